#!/usr/bin/env python3
"""
Seed the email template registry with one active entry per email type.

Usage:
    # Register every built-in component (existing rows are left alone)
    python seed_email_templates.py

    # Re-point existing rows at the built-in components and reactivate them
    python seed_email_templates.py --overwrite

    # Deactivate a template so the fallback is used instead
    python seed_email_templates.py --deactivate weekly_progress
"""

import argparse
import os
import sys

# Add parent directory to path to import backend modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mailflow.db.session import SessionLocal, init_db
from mailflow.models.email_template import EmailTemplate
from mailflow.utils.email_templates import TEMPLATE_COMPONENTS


def seed_templates(db, overwrite: bool = False) -> int:
    """Create (or with overwrite, reset) a registry row for every built-in component

    Returns:
        Number of rows created or updated
    """
    changed = 0
    for name in sorted(TEMPLATE_COMPONENTS):
        template = db.query(EmailTemplate).filter(EmailTemplate.name == name).first()
        if template is None:
            db.add(EmailTemplate(name=name, component_ref=name, is_active=True))
            print(f"✅ Registered {name}")
            changed += 1
        elif overwrite:
            template.component_ref = name
            template.is_active = True
            print(f"🔄 Reset {name}")
            changed += 1
    db.commit()
    return changed


def deactivate_template(db, name: str) -> bool:
    template = db.query(EmailTemplate).filter(EmailTemplate.name == name).first()
    if not template:
        print(f"❌ Template not found: {name}")
        return False
    template.is_active = False
    db.commit()
    print(f"⏸️  Deactivated {name} - fallback template will be used")
    return True


def main():
    parser = argparse.ArgumentParser(description="Seed the email template registry")
    parser.add_argument("--overwrite", action="store_true", help="Reset existing rows to the built-in components")
    parser.add_argument("--deactivate", metavar="NAME", help="Deactivate one template by email type")
    args = parser.parse_args()

    init_db()
    db = SessionLocal()
    try:
        if args.deactivate:
            return 0 if deactivate_template(db, args.deactivate) else 1
        changed = seed_templates(db, overwrite=args.overwrite)
        print(f"Done: {changed} template(s) changed")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
