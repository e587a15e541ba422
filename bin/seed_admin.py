# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – ensures the RBAC defaults and creates the first admin.

Run once after the migrations:
    alembic upgrade head
    python bin/seed_admin.py

The script reads FIRST_ADMIN_EMAIL, FIRST_ADMIN_PASSWORD and
FIRST_ADMIN_NAME from etc/app.conf.  The account is created with is_admin set
and is linked to the ADMIN role, so it resolves every USER_* permission.
Running it again changes nothing.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed_admin.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from core.config import settings              # noqa: E402
from database import SessionLocal             # noqa: E402
from rbac.seed import ensure_admin, seed_defaults  # noqa: E402


def seed():
    db = SessionLocal()
    try:
        seed_defaults(db)
        print("[seed_admin] System roles and permissions are in place.")

        if not settings.first_admin_email or not settings.first_admin_password:
            print("[seed_admin] FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set in etc/app.conf – no admin created.")
            return

        admin = ensure_admin(
            db,
            email=settings.first_admin_email,
            password=settings.first_admin_password,
            name=settings.first_admin_name,
        )
        print(f"[seed_admin] Admin '{admin.email}' (id={admin.id}) holds the ADMIN role.")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
