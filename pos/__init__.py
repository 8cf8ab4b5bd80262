"""
CloudPOS Transactions Core

This package contains the point-of-sale transaction pipeline:
- db: Database clients (Supabase + Redis)
- errors: Exception hierarchy mapped to HTTP statuses
- cart: Cart manager (store-backed, Redis cached)
- transactions: Transaction state machine, settlement and void
- services: Money arithmetic, repositories, cache/lock service
- routers: FastAPI endpoints
"""
