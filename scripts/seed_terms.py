#!/usr/bin/env python3
"""Seed the leadership lexicon with its starter terms."""

import sys
import os
from datetime import datetime

# Add parent directory to path to import academy modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from academy import create_app, db
from academy.models import Term
from academy.services.lexicon import slugify

# term, category, short definition, difficulty, discipline tags
TERMS_DATA = [
    ('Growth Mindset', 'mindset',
     'The belief that abilities can be developed through effort, learning and persistence.', 3,
     ['psychology', 'learning']),
    ('Active Listening', 'communication',
     'Fully concentrating on a speaker, understanding the message and responding thoughtfully.', 2,
     ['communication']),
    ('Servant Leadership', 'leadership',
     'A style of leading that puts the needs of the team first and helps people grow.', 5,
     ['leadership', 'ethics']),
    ('Delegation', 'leadership',
     'Handing a task and the authority to complete it to another team member.', 4,
     ['leadership', 'management']),
    ('Emotional Intelligence', 'mindset',
     'The ability to recognise and manage your own emotions and understand those of others.', 6,
     ['psychology']),
    ('Constructive Feedback', 'communication',
     'Specific, respectful comments aimed at helping someone improve.', 3,
     ['communication', 'teamwork']),
    ('Consensus', 'teamwork',
     'A group decision that every member can accept and support.', 5,
     ['teamwork', 'decision-making']),
    ('Stakeholder', 'project',
     'Anyone who is affected by or can affect the outcome of a project.', 7,
     ['management']),
]


def seed_terms(publish=True):
    """Insert missing starter terms and refresh the definitions of existing ones."""
    app = create_app()

    with app.app_context():
        print("Starting lexicon seeding...")
        print(f"Found {Term.query.count()} existing terms")

        added_count = 0
        updated_count = 0

        for name, category, short_def, difficulty, tags in TERMS_DATA:
            slug = slugify(name)
            term = Term.query.filter_by(slug=slug).first()

            if term:
                term.short_def = short_def
                term.category = category
                term.difficulty_score = difficulty
                term.discipline_tags = tags
                updated_count += 1
                print(f"  Updated: {name}")
            else:
                db.session.add(Term(
                    term=name,
                    slug=slug,
                    short_def=short_def,
                    category=category,
                    difficulty_score=difficulty,
                    discipline_tags=tags,
                    status='published' if publish else 'draft',
                    first_published_at=datetime.utcnow() if publish else None,
                ))
                added_count += 1
                print(f"  Added: {name}")

        db.session.commit()
        print(f"\nDone. Added {added_count}, updated {updated_count}.")


if __name__ == '__main__':
    seed_terms(publish='--draft' not in sys.argv)
