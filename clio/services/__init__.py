"""Pipeline services: analysis, generation, post-processing and orchestration."""
