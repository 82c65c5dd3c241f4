"""
Campaign Runner - Email Review Requests
=======================================

Sends review request emails to every pending (or previously failed)
customer of one location, one at a time, with the configured pause between
sends. Progress is printed as the loop advances.

Usage:
    python run_campaign.py --user u1 --location loc1
    python run_campaign.py --user u1 --location loc1 --business "Bella Pizza" --sender "Bella"
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from review_requests.application import ReviewRequestService, SendProgress
from review_requests.domain.errors import NoRecipientsError
from review_requests.infrastructure.config import get_settings
from review_requests.infrastructure.mailer import SmtpMailTransport
from review_requests.infrastructure.persistence import init_database

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_progress(progress: SendProgress):
    print(f"   [{progress.current}/{progress.total}] sent: {progress.sent} | failed: {progress.failed}")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send review request emails for one location.")
    parser.add_argument("--user", required=True, help="Owning user id")
    parser.add_argument("--location", required=True, help="Business location id")
    parser.add_argument("--business", default=None, help="Business name (defaults to the stored one)")
    parser.add_argument("--review-link", default=None, help="Review page URL (defaults to the stored one)")
    parser.add_argument("--sender", default=None, help="Sender display name (defaults to business name)")
    return parser.parse_args(argv)


def run_campaign(argv=None) -> int:
    """Run the review request campaign for one location."""
    args = parse_args(argv)

    print("\n" + "=" * 60)
    print("   Review Requests - Campaign Runner")
    print("=" * 60 + "\n")

    settings = get_settings()
    for issue in settings.validate():
        print(f"   {issue}")

    db = init_database(settings.database_file)
    transport = SmtpMailTransport.from_settings(settings.mail)
    if not transport.test_connection():
        print(f"   Could not log in to {settings.mail.host}:{settings.mail.port}. Check SMTP_USER / SMTP_PASSWORD.")
        return 1
    service = ReviewRequestService(db, transport, settings)

    try:
        summary = service.send_review_requests(
            args.user,
            args.location,
            business_name=args.business,
            review_link=args.review_link,
            sender_name=args.sender,
            on_progress=print_progress,
        )
    except NoRecipientsError as e:
        print(f"{e}\nAll done!")
        return 0
    except KeyboardInterrupt:
        print("\n\nInterrupted! Progress saved.")
        return 130

    # Summary
    stats = service.get_tracking_stats(args.user, args.location)
    print("\n" + "=" * 60)
    print("Campaign Complete!")
    print(f"   Total: {summary.total} | Sent: {summary.sent} | Failed: {summary.failed} | Skipped: {summary.skipped}")
    print(f"   Location: {stats['totalSent']} sent | {stats['openRate']}% opened | "
          f"{stats['clickRate']}% clicked | {stats['reviewRate']}% reviewed")
    print("=" * 60 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(run_campaign())
