"""dimension-foundry test suite.

Test organization:
- calendar/: date spine, holiday table and reporting-period generator
- snapshot/: fingerprints, snapshot planning, commits and history stores
- curate/: Ibis current and as-of views over history tables
- test_*.py: configuration, jobs, CLI, logging and the supporting modules
"""
