"""
DentalCare Pro backend.

Layout:
- config.py    : settings from environment variables (.env)
- db.py        : SQLAlchemy engine and sessions
- models.py    : ORM models and enums (patients, appointments, treatments, invoices)
- auth_*.py    : staff accounts, password hashing and JWT
- services.py  : domain logic (schedule, billing, reports)
- seed.py      : demo data (accounts, treatment catalog, patients)
- api_main.py  : FastAPI REST API
- cli.py       : admin commands
- dev.py       : combined API + Streamlit client runner
- launcher.py  : prerequisite checks, seeding and dev startup
"""
