# backend/helix/db/seed.py

"""
Database Seeding Script

Creates development data: the standard court and authority data sources plus
a batch of randomized regulatory updates. Output is reproducible for a given
``--seed``. Legal cases are not seeded here; run a sync to reconcile them up
to each source's target count.

    python -m helix.db.seed --seed 42 --updates 60
"""

import argparse
import random
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from helix.db.database import Base, SessionLocal, engine
from helix.db.models import EntityKind, Priority
from helix.services.record_store import RecordStore
from helix.utils.helpers import utcnow

# ============================================================================
# Seed Data
# ============================================================================

COURT_SOURCES: List[Dict[str, Any]] = [
    {"region": "US", "region_name": "United States", "court": "U.S. District Court", "target_count": 400},
    {"region": "EU", "region_name": "European Union", "court": "European Court of Justice", "target_count": 350},
    {"region": "DE", "region_name": "Germany", "court": "Bundesgerichtshof", "target_count": 300},
    {"region": "UK", "region_name": "United Kingdom", "court": "High Court of Justice", "target_count": 250},
    {"region": "CH", "region_name": "Switzerland", "court": "Federal Supreme Court", "target_count": 200},
    {"region": "FR", "region_name": "France", "court": "Conseil d'État", "target_count": 200},
    {"region": "CA", "region_name": "Canada", "court": "Federal Court of Canada", "target_count": 150},
    {"region": "AU", "region_name": "Australia", "court": "Federal Court of Australia", "target_count": 125},
]

AUTHORITY_SOURCES: List[Dict[str, Any]] = [
    {"id": "fda_guidance", "name": "FDA Guidance Documents", "region": "FDA", "region_name": "United States", "court": "FDA", "target_count": 10},
    {"id": "ema_updates", "name": "EMA Regulatory Updates", "region": "EMA", "region_name": "European Union", "court": "EMA", "target_count": 10},
    {"id": "bfarm_notices", "name": "BfArM Notices", "region": "BFARM", "region_name": "Germany", "court": "BfArM", "target_count": 5},
]

UPDATE_SUBJECTS = [
    "cybersecurity requirements", "clinical evaluation", "post-market surveillance",
    "software as a medical device", "unique device identification", "labeling",
    "biocompatibility testing", "AI/ML-enabled devices", "quality management systems",
]
UPDATE_TYPES = ["guidance", "approval", "recall", "standard", "safety_notice"]
DEVICE_CLASSES = ["I", "IIa", "IIb", "III"]
REGIONS = ["US", "EU", "DE", "UK", "CH", "FR", "CA", "AU"]


def court_source_payloads() -> List[Dict[str, Any]]:
    payloads = []
    for entry in COURT_SOURCES:
        payloads.append({
            "id": f"{entry['region'].lower()}_courts",
            "name": f"{entry['region_name']} Courts",
            "entity_kind": EntityKind.legal_case.value,
            "source_type": "court",
            "is_active": True,
            **entry,
        })
    return payloads


def authority_source_payloads() -> List[Dict[str, Any]]:
    return [
        {**entry, "entity_kind": EntityKind.regulatory_update.value, "source_type": "authority", "is_active": True}
        for entry in AUTHORITY_SOURCES
    ]


def random_update_payloads(
    rng: random.Random, count: int, now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Randomized regulatory updates; identical output for an identical ``rng`` state and ``now``"""
    now = now or utcnow()
    priorities = [p.value for p in Priority if p != Priority.unspecified]
    updates = []
    for i in range(1, count + 1):
        region = rng.choice(REGIONS)
        subject = rng.choice(UPDATE_SUBJECTS)
        update_type = rng.choice(UPDATE_TYPES)
        updates.append({
            "id": f"seed-update-{i:04d}",
            "title": f"{region} {update_type.replace('_', ' ')}: {subject}",
            "description": f"Seeded {update_type.replace('_', ' ')} on {subject} for {region}.",
            "region": region,
            "update_type": update_type,
            "priority": rng.choice(priorities),
            "published_at": now - timedelta(days=rng.randint(0, 365), hours=rng.randint(0, 23)),
            "device_classes": sorted(rng.sample(DEVICE_CLASSES, rng.randint(1, 2))),
        })
    return updates


# ============================================================================
# Main Seed Function
# ============================================================================

def seed_database(
    db: Session, seed: int = 42, updates: int = 60, now: Optional[datetime] = None
) -> Dict[str, int]:
    """
    Insert sources and updates that are not already present. Returns counts
    of rows created per entity kind.
    """
    store = RecordStore(db)
    rng = random.Random(seed)
    created = {EntityKind.data_source.value: 0, EntityKind.regulatory_update.value: 0}

    sources = court_source_payloads() + authority_source_payloads()
    existing = set(r.id for r in store.get_all(EntityKind.data_source))
    fresh = [s for s in sources if s["id"] not in existing]
    created[EntityKind.data_source.value] = store.create_many(EntityKind.data_source, fresh)

    payloads = random_update_payloads(rng, updates, now=now)
    existing = set(store.ids_with_prefix(EntityKind.regulatory_update, "seed-update-"))
    fresh = [u for u in payloads if u["id"] not in existing]
    created[EntityKind.regulatory_update.value] = store.create_many(EntityKind.regulatory_update, fresh)
    return created


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the Helix development database")
    parser.add_argument("--seed", type=int, default=42, help="random seed (default 42)")
    parser.add_argument("--updates", type=int, default=60, help="regulatory updates to generate")
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables first")
    args = parser.parse_args(argv)

    print("\n" + "=" * 80)
    print("Seeding Helix Database")
    print("=" * 80 + "\n")

    if args.reset:
        print("Dropping existing tables...")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        counts = seed_database(db, seed=args.seed, updates=args.updates)
    except Exception as e:
        print(f"\nSeeding failed: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()

    print("Summary:")
    print(f"   • Data sources: {counts[EntityKind.data_source.value]}")
    print(f"   • Regulatory updates: {counts[EntityKind.regulatory_update.value]}")
    print("\nRun POST /api/sync/all to reconcile legal cases.\n")
    return 0


# ============================================================================
# CLI Entry Point
# ============================================================================

if __name__ == "__main__":
    raise SystemExit(main())
