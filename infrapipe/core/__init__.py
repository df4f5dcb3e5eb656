"""Pipeline definition: environment, role, artifacts, build task, stages."""
