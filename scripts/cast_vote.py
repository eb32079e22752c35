#!/usr/bin/env python3
"""
Cast a vote from the command line, going through the same location gate,
pending-vote staging and reconciliation as the QR voting page.

Usage:
    python cast_vote.py VENUE_ID --stars 4 --lat 40.4168 --lng -3.7038 [--user USER_ID]
    python cast_vote.py --reconcile --user USER_ID
    python cast_vote.py --toggle-dev-mode

Environment Variables:
    API_URL, REDIS_HOST, REDIS_PORT, SESSION_ID, MAX_VOTE_DISTANCE_METERS
"""

import argparse
import asyncio
import logging
import sys

from tapas_route.shared.geo import format_distance
from tapas_route.voting_api.store import NotFoundError, VoteStoreError
from tapas_route.voting_client.api_client import VoteApiClient
from tapas_route.voting_client.config import Config
from tapas_route.voting_client.geolocation import GeolocationProvider, StaticPositionSource
from tapas_route.voting_client.identity import StaticIdentityProvider
from tapas_route.voting_client.protocol import (
    EligibilityStatus,
    SessionContext,
    SubmissionStatus,
    VoteSubmissionProtocol,
)
from tapas_route.voting_client.storage import DevModeFlag, PendingVoteCache, create_redis_client

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def print_outcome(outcome):
    marker = "✓" if outcome.status == SubmissionStatus.COMMITTED else "✗"
    print(f"{marker} {outcome.title}")
    if outcome.message:
        print(f"  {outcome.message}")
    if outcome.raffle_unlocked:
        print("  🎉 ¡Ya participas en el sorteo!")


async def run(args) -> int:
    redis_client = create_redis_client()
    store = VoteApiClient()

    source = None
    if args.lat is not None and args.lng is not None:
        source = StaticPositionSource(args.lat, args.lng, args.accuracy)

    context = SessionContext(
        identity=StaticIdentityProvider(args.user),
        pending_votes=PendingVoteCache(redis_client),
        dev_mode=DevModeFlag(redis_client),
        geolocation=GeolocationProvider(source),
        store=store,
    )
    protocol = VoteSubmissionProtocol(context)

    try:
        if args.toggle_dev_mode:
            enabled = await context.dev_mode.toggle()
            print(f"✓ Dev mode {'ON' if enabled else 'OFF'}")
            return 0

        if args.reconcile:
            outcome = await protocol.reconcile()
            if outcome is None:
                print("No staged vote to submit")
                return 0
            print_outcome(outcome)
            return 0 if outcome.status == SubmissionStatus.COMMITTED else 1

        try:
            venue, tapas = await store.get_venue(args.venue_id)
        except NotFoundError:
            print(f"✗ Local no encontrado: {args.venue_id}", file=sys.stderr)
            return 1

        if args.tapa_id:
            tapa = next((t for t in tapas if t.id == args.tapa_id), None)
        elif len(tapas) == 1:
            tapa = tapas[0]
        else:
            tapa = None

        if tapa is None:
            print("✗ Choose a tapa with --tapa-id:", file=sys.stderr)
            for t in tapas:
                print(f"  {t.id}  {t.name}", file=sys.stderr)
            return 1

        # Resolve the position before submitting; a CLI has no UI to wait in
        await context.geolocation.request()
        eligibility = await protocol.check_location(venue)
        if eligibility.status in (EligibilityStatus.ELIGIBLE, EligibilityStatus.TOO_FAR):
            print(f"Distance to {venue.name}: {format_distance(eligibility.distance)}")

        outcome = await protocol.submit(venue, tapa, args.stars)
        print_outcome(outcome)
        return 0 if outcome.status in (
            SubmissionStatus.COMMITTED, SubmissionStatus.STAGED_FOR_SIGN_IN
        ) else 1
    except VoteStoreError as e:
        print(f"✗ Vote API error: {e}", file=sys.stderr)
        return 1
    finally:
        await store.close()
        await redis_client.aclose()


def main():
    parser = argparse.ArgumentParser(description='Vote for a tapa')
    parser.add_argument('venue_id', nargs='?', help='Venue id from the QR code')
    parser.add_argument('--tapa-id', help='Tapa to rate (optional when the venue has one tapa)')
    parser.add_argument('--stars', type=int, default=0, help='Rating, 1 to 5')
    parser.add_argument('--user', help='Signed-in user id; omit to stage the vote for later')
    parser.add_argument('--lat', type=float, help='Current latitude')
    parser.add_argument('--lng', type=float, help='Current longitude')
    parser.add_argument('--accuracy', type=float, help='Fix accuracy in meters')
    parser.add_argument('--reconcile', action='store_true', help='Submit the staged vote for --user')
    parser.add_argument('--toggle-dev-mode', action='store_true', help='Toggle the location bypass')
    args = parser.parse_args()

    if not (args.reconcile or args.toggle_dev_mode or args.venue_id):
        parser.error('venue_id is required')

    sys.exit(asyncio.run(run(args)))


if __name__ == '__main__':
    main()
