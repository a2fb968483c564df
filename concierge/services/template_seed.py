"""
Default checklist catalog.

The catalog is admin-curated; this module only provides a starter set for
fresh installs and local development. Run via:

    flask --app wsgi seed-checklist-templates
"""

import logging

from concierge.models import db
from concierge.models.checklist import ChecklistTemplate

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
# SEED TEMPLATES
# ═══════════════════════════════════════════════════════════════════

def seed_default_templates():
    """
    Insert the default templates.
    Safe to run multiple times. Skips existing (category, title) combos.

    Returns the number of templates created. Flushes; the caller commits.
    """
    created = 0

    for t in _get_default_templates():
        exists = ChecklistTemplate.query.filter_by(
            category=t["category"],
            title=t["title"],
        ).first()
        if not exists:
            db.session.add(ChecklistTemplate(**t))
            created += 1

    if created > 0:
        db.session.flush()
        logger.info("Seeded %d checklist templates", created)

    return created


def _get_default_templates() -> list[dict]:
    return [
        # ── Pre-departure ───────────────────────────────────────────
        {
            "category": "pre_departure",
            "sub_category": "Documents",
            "title": "Check passport and visa validity",
            "description": [
                {"text": "Passport valid for at least six months past arrival"},
                {"text": "Visa type matches the purpose of stay"},
            ],
            "order_num": 1,
            "is_required": True,
            "reference_url": "https://travel.state.gov",
        },
        {
            "category": "pre_departure",
            "sub_category": "Documents",
            "title": "Request international driving permit",
            "description": [{"text": "Bring your home-country licence to the issuing office"}],
            "order_num": 2,
            "is_required": False,
            "reference_url": None,
        },
        {
            "category": "pre_departure",
            "sub_category": "Housing",
            "title": "Book temporary accommodation",
            "description": [{"text": "Cover at least the first two weeks after arrival"}],
            "order_num": 3,
            "is_required": True,
            "reference_url": None,
        },
        # ── Arrival ─────────────────────────────────────────────────
        {
            "category": "arrival",
            "sub_category": "SSN",
            "title": "Apply for a Social Security Number",
            "description": [
                {"text": "Wait about ten days after entry before applying"},
                {"text": "Bring passport, visa and I-94 record"},
            ],
            "order_num": 1,
            "is_required": True,
            "reference_url": "https://www.ssa.gov/number-card",
        },
        {
            "category": "arrival",
            "sub_category": "Banking",
            "title": "Open a bank account",
            "description": [{"text": "Most banks accept passport plus proof of address"}],
            "order_num": 2,
            "is_required": True,
            "reference_url": None,
        },
        {
            "category": "arrival",
            "sub_category": "Phone",
            "title": "Activate a local mobile plan",
            "description": [],
            "order_num": 3,
            "is_required": False,
            "reference_url": None,
        },
        # ── Early settlement ────────────────────────────────────────
        {
            "category": "settlement_early",
            "sub_category": "Housing",
            "title": "Sign a lease",
            "description": [
                {"text": "Review the lease term and deposit conditions"},
                {"text": "Photograph the unit at move-in"},
            ],
            "order_num": 1,
            "is_required": True,
            "reference_url": None,
        },
        {
            "category": "settlement_early",
            "sub_category": "Utilities",
            "title": "Set up electricity, gas and internet",
            "description": [{"text": "Schedule installation before the move-in date"}],
            "order_num": 2,
            "is_required": True,
            "reference_url": None,
        },
        {
            "category": "settlement_early",
            "sub_category": "Driver's licence",
            "title": "Take the written driving test",
            "description": [{"text": "Book an appointment at the local DMV"}],
            "order_num": 3,
            "is_required": False,
            "reference_url": None,
        },
        # ── Settlement complete ─────────────────────────────────────
        {
            "category": "settlement_complete",
            "sub_category": "Vehicle",
            "title": "Buy or lease a car",
            "description": [{"text": "Arrange insurance before pickup"}],
            "order_num": 1,
            "is_required": False,
            "reference_url": None,
        },
        {
            "category": "settlement_complete",
            "sub_category": "Insurance",
            "title": "Review health and renter's insurance",
            "description": [],
            "order_num": 2,
            "is_required": True,
            "reference_url": None,
        },
    ]
