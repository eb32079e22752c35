#!/usr/bin/env python3
"""
Create the tapas route schema in PostgreSQL and optionally seed a demo event.

The schema carries the store-level guarantees the voting API relies on:
one vote per (user_id, tapa_id), stars between 1 and 5, non-negative
prices and lower-case event slugs.

Usage:
    python init_db.py [--host HOST] [--port PORT] [--db NAME] [--seed] [--drop]

Environment Variables:
    POSTGRES_HOST, POSTGRES_PORT, POSTGRES_DB, POSTGRES_USER, POSTGRES_PASSWORD
"""

import argparse
import json
import os
import sys

import psycopg2
import psycopg2.extras
from dotenv import load_dotenv

load_dotenv()

SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE CHECK (slug ~ '^[a-z0-9-]+$'),
    start_date DATE NOT NULL,
    end_date DATE NOT NULL,
    theme_colors JSONB,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CHECK (end_date >= start_date)
);

CREATE TABLE IF NOT EXISTS venues (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    event_id TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    description TEXT,
    lat DOUBLE PRECISION NOT NULL,
    lng DOUBLE PRECISION NOT NULL,
    address TEXT,
    image_url TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS tapas (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    venue_id TEXT NOT NULL REFERENCES venues(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    description TEXT,
    price NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (price >= 0),
    image_url TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS profiles (
    user_id TEXT PRIMARY KEY,
    email TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS votes (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    user_id TEXT NOT NULL,
    tapa_id TEXT NOT NULL REFERENCES tapas(id) ON DELETE CASCADE,
    stars SMALLINT NOT NULL CHECK (stars BETWEEN 1 AND 5),
    validated_location BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT votes_user_tapa_unique UNIQUE (user_id, tapa_id)
);

CREATE INDEX IF NOT EXISTS idx_venues_event_id ON venues(event_id);
CREATE INDEX IF NOT EXISTS idx_tapas_venue_id ON tapas(venue_id);
CREATE INDEX IF NOT EXISTS idx_votes_user_id ON votes(user_id);
CREATE INDEX IF NOT EXISTS idx_votes_tapa_id ON votes(tapa_id);
"""

DROP = """
DROP TABLE IF EXISTS votes;
DROP TABLE IF EXISTS profiles;
DROP TABLE IF EXISTS tapas;
DROP TABLE IF EXISTS venues;
DROP TABLE IF EXISTS events;
"""

SEED_EVENT = {
    'name': 'Ruta de la Tapa 2026',
    'slug': 'ruta-tapa-2026',
    'start_date': '2026-02-01',
    'end_date': '2026-02-15',
    'theme_colors': {'primary': '#c2410c', 'secondary': '#facc15'},
}

SEED_VENUES = [
    {
        'name': 'Bar La Plaza',
        'lat': 40.4168,
        'lng': -3.7038,
        'address': 'Plaza Mayor 1',
        'tapas': [('Croqueta de jamón', '3.50'), ('Tortilla de patatas', '3.00')],
    },
    {
        'name': 'Taberna El Rincón',
        'lat': 40.4153,
        'lng': -3.7074,
        'address': 'Calle Mayor 42',
        'tapas': [('Pincho de tortilla', '2.50')],
    },
    {
        'name': 'Mesón del Arco',
        'lat': 40.4139,
        'lng': -3.7015,
        'address': 'Calle de Toledo 7',
        'tapas': [('Patatas bravas', '4.00')],
    },
]


class SchemaInitializer:
    """Create and seed the tapas route database."""

    def __init__(self, dsn: str):
        """
        Initialize SchemaInitializer.

        Args:
            dsn: PostgreSQL connection string
        """
        self.dsn = dsn
        self.conn = None

    def connect(self) -> bool:
        """
        Connect to PostgreSQL.

        Returns:
            bool: True if connection successful
        """
        try:
            self.conn = psycopg2.connect(self.dsn)
            print("✓ Connected to PostgreSQL")
            return True
        except psycopg2.Error as e:
            print(f"✗ Failed to connect to PostgreSQL: {e}", file=sys.stderr)
            return False

    def create_schema(self, drop_existing: bool = False):
        """Create tables, constraints and indexes."""
        with self.conn, self.conn.cursor() as cursor:
            if drop_existing:
                print("Dropping existing tables...")
                cursor.execute(DROP)
            cursor.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')
            cursor.execute(SCHEMA)
        print("✓ Schema ready")

    def seed(self) -> str:
        """
        Insert a demo event with venues and tapas.

        Returns:
            str: The event id
        """
        with self.conn, self.conn.cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO events (name, slug, start_date, end_date, theme_colors)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (slug) DO UPDATE SET name = EXCLUDED.name
                RETURNING id
                """,
                (
                    SEED_EVENT['name'],
                    SEED_EVENT['slug'],
                    SEED_EVENT['start_date'],
                    SEED_EVENT['end_date'],
                    psycopg2.extras.Json(SEED_EVENT['theme_colors']),
                )
            )
            event_id = cursor.fetchone()[0]

            for venue in SEED_VENUES:
                cursor.execute(
                    """
                    INSERT INTO venues (event_id, name, lat, lng, address)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING id
                    """,
                    (event_id, venue['name'], venue['lat'], venue['lng'], venue['address'])
                )
                venue_id = cursor.fetchone()[0]

                psycopg2.extras.execute_values(
                    cursor,
                    "INSERT INTO tapas (venue_id, name, price) VALUES %s",
                    [(venue_id, name, price) for name, price in venue['tapas']]
                )
                print(f"  Seeded venue {venue['name']} ({len(venue['tapas'])} tapas)")

        print(f"✓ Seeded event {SEED_EVENT['slug']} ({event_id})")
        return event_id

    def summary(self) -> dict:
        """Row counts per table."""
        counts = {}
        with self.conn.cursor() as cursor:
            for table in ('events', 'venues', 'tapas', 'profiles', 'votes'):
                cursor.execute(f"SELECT COUNT(*) FROM {table}")
                counts[table] = cursor.fetchone()[0]
        return counts

    def close(self):
        if self.conn:
            self.conn.close()


def main():
    parser = argparse.ArgumentParser(description='Initialize the tapas route database')
    parser.add_argument('--host', default=os.getenv('POSTGRES_HOST', 'localhost'))
    parser.add_argument('--port', type=int, default=int(os.getenv('POSTGRES_PORT', '5432')))
    parser.add_argument('--db', default=os.getenv('POSTGRES_DB', 'tapas_route'))
    parser.add_argument('--user', default=os.getenv('POSTGRES_USER', 'tapas_user'))
    parser.add_argument('--password', default=os.getenv('POSTGRES_PASSWORD', 'tapas_pass'))
    parser.add_argument('--seed', action='store_true', help='Insert a demo event with venues and tapas')
    parser.add_argument('--drop', action='store_true', help='Drop existing tables first')
    args = parser.parse_args()

    dsn = f"postgresql://{args.user}:{args.password}@{args.host}:{args.port}/{args.db}"
    initializer = SchemaInitializer(dsn)

    if not initializer.connect():
        sys.exit(1)

    try:
        initializer.create_schema(drop_existing=args.drop)
        if args.seed:
            initializer.seed()
        print(json.dumps(initializer.summary(), indent=2))
    except psycopg2.Error as e:
        print(f"✗ Database error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        initializer.close()


if __name__ == '__main__':
    main()
