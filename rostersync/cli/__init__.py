# =============================================================================
# rostersync/cli/__init__.py: command-line interface
# =============================================================================
#
# Operator commands for the artist sync, run via `python -m rostersync.cli`
# or the `rostersync` console script:
#
#   sync              Full run (diff, research, generate, publish)
#   populate-queue    Seed the research queue without publishing
#   status / missing  Inspect the last run and the current diff
#   queue-*           Research queue maintenance
#   lock-info / force-unlock
#                     Inspect or override the cross-process sync lock
#   audit-duplicates  Report duplicate pages in the published catalog
# =============================================================================
