"""Deal pipeline persistence package.

Provides SQLite-backed stores for campaigns, negotiations, messages, terms,
contracts and payments, plus the per-aggregate lock registry.
"""

from influenceflow.state.contract_store import ContractStore
from influenceflow.state.locks import CHECKOUT, CONTRACT, NEGOTIATION, AggregateLocks
from influenceflow.state.message_log import MessageLog
from influenceflow.state.payment_store import PaymentStore
from influenceflow.state.schema import connect, init_deal_db, init_deal_tables
from influenceflow.state.store import CampaignStore, NegotiationStore
from influenceflow.state.terms_store import TermsStore

__all__ = [
    "CHECKOUT",
    "CONTRACT",
    "NEGOTIATION",
    "AggregateLocks",
    "CampaignStore",
    "ContractStore",
    "MessageLog",
    "NegotiationStore",
    "PaymentStore",
    "TermsStore",
    "connect",
    "init_deal_db",
    "init_deal_tables",
]
