"""Campaign records as seen by the deal pipeline.

Campaigns are owned by an upstream CRUD service; this module keeps the
fields negotiations and contracts read, and gates activation on funding.
"""

from __future__ import annotations

import structlog

from influenceflow.domain.errors import CampaignNotFundedError, NotFoundError
from influenceflow.domain.models import Campaign, Payment
from influenceflow.domain.types import CampaignStatus, PaymentStatus
from influenceflow.state.payment_store import PaymentStore
from influenceflow.state.store import CampaignStore

logger = structlog.get_logger()

# A deposit in either status counts as funding for activation.
FUNDED_DEPOSIT_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.PROCESSING)


class CampaignService:
    """Register campaigns and change their serving status."""

    def __init__(self, campaigns: CampaignStore, payments: PaymentStore) -> None:
        self._campaigns = campaigns
        self._payments = payments

    def register_campaign(self, campaign: Campaign) -> Campaign:
        """Insert or refresh the upstream campaign record.

        An existing campaign keeps its status; use ``set_status`` to change it.
        """
        stored = self._campaigns.upsert(campaign)
        logger.info(
            "campaign_registered",
            campaign_id=stored.id,
            brand_id=stored.brand_id,
            status=stored.status.value,
        )
        return stored

    def get(self, campaign_id: str) -> Campaign:
        campaign = self._campaigns.get(campaign_id)
        if campaign is None:
            raise NotFoundError("campaign", campaign_id)
        return campaign

    def set_status(self, campaign_id: str, status: CampaignStatus) -> Campaign:
        """Change a campaign's status.

        Raises:
            NotFoundError: Unknown campaign.
            CampaignNotFundedError: Activation without a completed or
                processing deposit.
        """
        campaign = self.get(campaign_id)
        if status == CampaignStatus.ACTIVE and not self._payments.has_deposit(
            campaign_id, FUNDED_DEPOSIT_STATUSES
        ):
            raise CampaignNotFundedError(campaign_id)
        if campaign.status != status:
            self._campaigns.set_status(campaign_id, status)
            logger.info(
                "campaign_status_changed",
                campaign_id=campaign_id,
                from_status=campaign.status.value,
                to_status=status.value,
            )
        return campaign.model_copy(update={"status": status})

    def list_payments(self, campaign_id: str) -> list[Payment]:
        self.get(campaign_id)
        return self._payments.list_for_campaign(campaign_id)
