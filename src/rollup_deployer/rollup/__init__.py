"""Child rollup creation collaborator."""
