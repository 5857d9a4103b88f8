# localboard: local-first kanban board data layer
#
# Components:
#   schema.py     - Records (Board, Column, Card), patches, validation errors
#   ordering.py   - Fractional order keys and explicit rebalancing
#   migrations.py - Append-only schema migrations with a ledger table
#   db.py         - Single guarded SQLite connection (WAL, FKs, busy timeout)
#   store.py      - Board, column and card repositories
#   backup.py     - Snapshot, list and retention of database backups
#   config.py     - YAML configuration
#   app.py        - Startup sequence wiring everything together
#   commands.py   - Named request/response calls for the UI shell
#   server.py     - Flask JSON shell over the command surface
#   cli.py        - localboard command line
