"""Fan-out of listing alerts for a newly published listing."""

import asyncio
import logging
from typing import List, Optional

from listing_notifier.domain.models import Listing, User
from listing_notifier.domain.ports import UserDirectory
from listing_notifier.logging import get_logger
from listing_notifier.logging.context import log_context
from listing_notifier.matching.engine import find_candidates
from listing_notifier.matching.models import NotificationCandidate
from listing_notifier.notifications.models import (
    DeliveryExhaustedError,
    FanoutResult,
    NotificationResult,
)
from listing_notifier.notifications.service import NotificationService

logger = get_logger(__name__, component="fanout")


class ListingFanout:
    """Matches a listing against every saved search and sends one alert per match.

    All deliveries for one listing run concurrently and are awaited together;
    a failing delivery is recorded in the result and logged, never raised,
    so the remaining buyers are still notified.
    """

    def __init__(
        self,
        notification_service: NotificationService,
        user_directory: UserDirectory,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """
        Initialize the fan-out coordinator.

        Args:
            notification_service: Service that delivers each alert
            user_directory: Source of buyers holding saved searches
            logger_instance: Logger instance (uses module logger if None)
        """
        self.notification_service = notification_service
        self.user_directory = user_directory
        self.logger = logger_instance or logger

    async def notify_for_new_listing(self, listing: Listing) -> FanoutResult:
        """Send alerts for every (buyer, saved search) pair the listing satisfies.

        Args:
            listing: Snapshot of the listing as published

        Returns:
            FanoutResult with one NotificationResult per matching pair.
            Never raises for lookup or delivery failures.
        """
        result = FanoutResult(listing_id=listing.id)

        with log_context(listing_id=listing.id):
            try:
                users: List[User] = await self.user_directory.find_users_with_saved_searches()
            except Exception as e:
                self.logger.error(
                    f"Could not load buyers with saved searches for listing {listing.id}: {e}",
                    exc_info=True,
                    extra={"event": "fanout.user_lookup_failed"},
                )
                return result

            candidates = find_candidates(listing, users)
            result.candidates = len(candidates)

            self.logger.info(
                f"Listing {listing.id} matched {len(candidates)} saved searches across {len(users)} buyers",
                extra={"event": "fanout.started", "buyers": len(users), "candidates": len(candidates)},
            )

            if not candidates:
                self.logger.info("No saved searches matched", extra={"event": "fanout.completed", **result.as_log_fields()})
                return result

            outcomes = await asyncio.gather(
                *(
                    self.notification_service.send_listing_match_notification(
                        candidate.buyer, candidate.listing, candidate.search
                    )
                    for candidate in candidates
                ),
                return_exceptions=True,
            )

            for candidate, outcome in zip(candidates, outcomes):
                result.results.append(self._to_result(candidate, outcome))

            self.logger.info(
                f"Fan-out for listing {listing.id} complete: {result.sent} sent, "
                f"{result.skipped} skipped, {result.failed} failed",
                extra={"event": "fanout.completed", **result.as_log_fields()},
            )

        return result

    def _to_result(self, candidate: NotificationCandidate, outcome) -> NotificationResult:
        buyer_id = candidate.buyer.id
        search_name = candidate.search.name

        if isinstance(outcome, BaseException):
            if isinstance(outcome, DeliveryExhaustedError):
                self.logger.error(
                    f"Alert for user {buyer_id} ({search_name}) was not delivered: {outcome}",
                    extra={
                        "event": "fanout.delivery_failed",
                        "user_id": buyer_id,
                        "search_name": search_name,
                        "category": outcome.category,
                    },
                )
            else:
                self.logger.error(
                    f"Unexpected error delivering alert for user {buyer_id} ({search_name}): {outcome!r}",
                    exc_info=outcome,
                    extra={
                        "event": "fanout.delivery_failed",
                        "user_id": buyer_id,
                        "search_name": search_name,
                        "error_type": type(outcome).__name__,
                    },
                )
            return NotificationResult(
                user_id=buyer_id, search_name=search_name, status="failed", error=str(outcome)
            )

        if outcome is None:
            return NotificationResult(user_id=buyer_id, search_name=search_name, status="skipped")

        return NotificationResult(
            user_id=buyer_id,
            search_name=search_name,
            status="sent",
            provenance=outcome.provenance,
        )
