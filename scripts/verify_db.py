#!/usr/bin/env python3
"""Verify CardStack database contents."""

import sys
from pathlib import Path

from sqlalchemy import func, select

sys.path.insert(0, str(Path(__file__).parent.parent))
from cardstack.models.db_models import (
    CardRow,
    ChatRow,
    CollectionDeckRow,
    CollectionRow,
    DeckRow,
    MessageRow,
    UserRow,
)
from cardstack.services.database import get_session_factory, init_database, session_scope

TABLES = [
    ("Users", UserRow),
    ("Decks", DeckRow),
    ("Collections", CollectionRow),
    ("Collection links", CollectionDeckRow),
    ("Cards", CardRow),
    ("Chats", ChatRow),
    ("Messages", MessageRow),
]


def main():
    """Print table counts and a sample deck."""
    init_database()

    with session_scope(get_session_factory()) as session:
        print("=== CardStack Database Status ===")
        for label, model in TABLES:
            count = session.scalar(select(func.count()).select_from(model))
            print(f"{label}: {count}")
        print()

        deck = session.scalars(select(DeckRow).order_by(DeckRow.created_at.desc())).first()
        if deck is not None:
            print("=== Sample Deck ===")
            print(f"ID: {deck.id}")
            print(f"Name: {deck.name}")
            print(f"Description: {deck.description or '-'}")
            print(f"Cards: {len(deck.cards)}")
            for card in deck.cards[:3]:
                print(f"  {card.front} -> {card.back} (due {card.due_at or 'now'})")
            print()

    print("✓ Database verification complete!")


if __name__ == "__main__":
    main()
