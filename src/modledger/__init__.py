"""
modledger - moderation sanction ledger for a Discord community dashboard

Core Components:

- **Sanction Engine**: validates punish requests, enforces them through the
  bot, records every action in an append-mostly audit ledger, and reverses
  active bans, mutes and timeouts
- **Expiry**: mutes and timeouts lapse at read time; nothing rewrites the
  ledger when they expire
- **Enforcement Gateway**: py-cord binding that applies and lifts sanctions,
  reporting failures as data instead of raising
- **HTTP API**: FastAPI routes for the dashboard (punish, active, history,
  reverse, audit log, stats)

Usage:
    from modledger.main import main
    main()  # Starts the bot and the API server
"""
