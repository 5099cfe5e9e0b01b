import os

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from .models.tables import BusinessHours, Services


# ======================================================
# DEFAULTS
# ======================================================

DEFAULT_SERVICES = [
    # name, duration_minutes, price_cents, capacity
    ("Basic exterior wash", 30, 1500, 2),
    ("Full wash", 60, 3000, 1),
    ("Interior detailing", 90, 6000, 1),
]


# ======================================================
# SEEDING
# ======================================================

def seed_defaults(
    db: Session,
    open_time: str = "08:00",
    close_time: str = "18:00",
    services=DEFAULT_SERVICES,
) -> dict:
    """
    Idempotent bootstrap of the booking ledger.

    Business hours are created for every weekday that has none; services
    are created by name when missing. Existing rows are never modified.

    Returns:
        {"business_hours": created, "services": created}
    """
    created_hours = 0
    existing_days = {row.day_of_week for row in db.query(BusinessHours.day_of_week).all()}
    for day in range(7):
        if day in existing_days:
            continue
        db.add(BusinessHours(day_of_week=day, open_time=open_time, close_time=close_time, is_open=1))
        created_hours += 1

    created_services = 0
    existing_names = {row.name for row in db.query(Services.name).all()}
    for name, duration, price_cents, capacity in services:
        if name in existing_names:
            continue
        db.add(Services(
            name=name,
            duration_minutes=duration,
            price_cents=price_cents,
            capacity=capacity,
            is_active=1,
        ))
        created_services += 1

    db.commit()
    return {"business_hours": created_hours, "services": created_services}


# ======================================================
# ENTRYPOINT
# ======================================================

def main():
    load_dotenv()

    from .database import SessionLocal, init_db

    open_time = os.getenv("SEED_OPEN_TIME", "08:00")
    close_time = os.getenv("SEED_CLOSE_TIME", "18:00")

    init_db()
    with SessionLocal() as db:
        created = seed_defaults(db, open_time, close_time)

    if not any(created.values()):
        print("[SEED] Ledger already seeded, nothing to do")
    else:
        print(
            f"[SEED] Created {created['business_hours']} business-hours rows "
            f"and {created['services']} services ({open_time}-{close_time})"
        )


if __name__ == "__main__":
    main()
