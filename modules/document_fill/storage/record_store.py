"""
Record store interface.

The fill engine only reads providers, office locations and mailing addresses;
persistence belongs to the caller. ``InMemoryRecordStore`` backs tests and
standalone use.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from modules.document_fill.core.exceptions import RecordNotFoundException
from shared.contracts.records import MailingAddress, OfficeLocation, Provider
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

RecordInput = Union[Provider, OfficeLocation, MailingAddress, Mapping[str, Any]]


class IRecordStore(ABC):
    """
    Read access to the records a fill draws from.

    Every getter raises RecordNotFoundException for an unknown id.
    """

    @abstractmethod
    async def get_provider(self, provider_id: str) -> Provider:
        pass

    @abstractmethod
    async def get_office(self, office_id: str) -> OfficeLocation:
        pass

    @abstractmethod
    async def get_mailing_address(self, address_id: str) -> MailingAddress:
        pass

    async def get_providers(self, provider_ids: Iterable[str]) -> List[Provider]:
        """Providers in the order of ``provider_ids``."""
        return [await self.get_provider(provider_id) for provider_id in provider_ids]


class InMemoryRecordStore(IRecordStore):
    """Dictionary-backed store. Plain dicts are validated into record models."""

    def __init__(
        self,
        providers: Optional[Iterable[RecordInput]] = None,
        offices: Optional[Iterable[RecordInput]] = None,
        mailing_addresses: Optional[Iterable[RecordInput]] = None
    ):
        self._providers: Dict[str, Provider] = {}
        self._offices: Dict[str, OfficeLocation] = {}
        self._mailing: Dict[str, MailingAddress] = {}

        for record in providers or ():
            self.add_provider(record)
        for record in offices or ():
            self.add_office(record)
        for record in mailing_addresses or ():
            self.add_mailing_address(record)

    def add_provider(self, record: RecordInput) -> Provider:
        provider = record if isinstance(record, Provider) else Provider.model_validate(record)
        self._providers[provider.id] = provider
        return provider

    def add_office(self, record: RecordInput) -> OfficeLocation:
        office = record if isinstance(record, OfficeLocation) else OfficeLocation.model_validate(record)
        self._offices[office.id] = office
        return office

    def add_mailing_address(self, record: RecordInput) -> MailingAddress:
        address = record if isinstance(record, MailingAddress) else MailingAddress.model_validate(record)
        self._mailing[address.id] = address
        return address

    async def get_provider(self, provider_id: str) -> Provider:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise RecordNotFoundException(f"Provider not found: {provider_id}")

    async def get_office(self, office_id: str) -> OfficeLocation:
        try:
            return self._offices[office_id]
        except KeyError:
            raise RecordNotFoundException(f"Office location not found: {office_id}")

    async def get_mailing_address(self, address_id: str) -> MailingAddress:
        try:
            return self._mailing[address_id]
        except KeyError:
            raise RecordNotFoundException(f"Mailing address not found: {address_id}")
