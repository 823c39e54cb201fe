"""
DfaReporting (Campaign Manager) adapter.

Implements IDestinationClient on top of an IAPIClient:
- profile lookup: GET userprofiles
- conversions upload: POST userprofiles/{profileId}/conversions/batchinsert
"""
import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..errors import BatchSendError, PartialRecordError, ResolutionError
from ..models import Batch, BatchOutcome, Profile, RecordError
from ..protocols import IAPIClient

logger = logging.getLogger(__name__)

DFAREPORTING_API_URL = "https://dfareporting.googleapis.com/dfareporting/v4/"
BATCH_INSERT_KIND = "dfareporting#conversionsBatchInsertRequest"
ENCRYPTED_USER_ID = "encryptedUserId"


class DfaReportingClient:
    """
    Campaign Manager client used by the conversions upload handler.

    `conversions config` (cmConfig) keys:
        idType: record field identifying the user, e.g. gclid, encryptedUserId,
            mobileDeviceId, matchId, dclid
        conversion: template merged into every conversion, e.g.
            floodlightConfigurationId, floodlightActivityId, quantity, value
        customVariables: record fields sent as custom Floodlight variables
        encryptionInfo: required when idType is encryptedUserId
    """

    def __init__(self, api_client: IAPIClient):
        self._api = api_client

    async def get_profile_id(self, account_id: str, identity: Optional[str] = None) -> Profile:
        """
        Find the user profile of `identity` for a Campaign Manager account.

        Different users have different profiles for the same account; without an
        identity the first profile of the account is used.
        """
        response = await self._api.get("userprofiles")
        items = response.json().get("items") or []

        for item in items:
            if str(item.get("accountId")) != str(account_id):
                continue
            user_name = item.get("userName")
            if identity and (user_name or "").lower() != identity.lower():
                continue
            logger.debug(f"Found profile {item.get('profileId')} for account {account_id}")
            return Profile(
                profile_id=str(item["profileId"]),
                account_id=str(account_id),
                user_name=user_name,
            )

        who = f" and user {identity}" if identity else ""
        raise ResolutionError(f"No profile found for account {account_id}{who}")

    async def upload_conversions(
        self,
        profile: Profile,
        config: Dict[str, Any],
        batch: Batch,
    ) -> BatchOutcome:
        """Upload one batch and report per-record status."""
        conversions, sent, errors = self._build_conversions(config, batch)

        if conversions:
            body: Dict[str, Any] = {"kind": BATCH_INSERT_KIND, "conversions": conversions}
            if config.get("idType") == ENCRYPTED_USER_ID:
                body["encryptionInfo"] = config.get("encryptionInfo")

            endpoint = f"userprofiles/{profile.profile_id}/conversions/batchinsert"
            try:
                response = await self._api.post(endpoint, json=body)
                data = response.json()
            except (RuntimeError, httpx.HTTPError, ValueError) as exc:
                raise BatchSendError(batch.index, str(exc)) from exc

            if data.get("hasFailures"):
                statuses = data.get("status") or []
                if len(statuses) != len(sent):
                    raise BatchSendError(
                        batch.index,
                        f"Response reports failures with {len(statuses)} statuses for {len(sent)} conversions",
                    )
                errors.extend(self._collect_failures(batch.index, sent, statuses))

        failed = len(errors)
        if failed:
            logger.warning(f"Batch {batch.index}: {failed}/{batch.size} conversions rejected")
        return BatchOutcome(
            batch_index=batch.index,
            succeeded=batch.size - failed,
            failed=failed,
            errors=errors,
        )

    @staticmethod
    def _build_conversions(
        config: Dict[str, Any],
        batch: Batch,
    ) -> Tuple[List[Dict[str, Any]], List[Tuple[int, Any]], List[RecordError]]:
        id_type = config.get("idType", "gclid")
        template = config.get("conversion") or {}
        custom_variables = config.get("customVariables") or []
        timestamp = str(int(time.time() * 1_000_000))

        conversions = []
        sent = []
        errors = []
        for line, raw in batch.lines():
            try:
                record = json.loads(raw) if isinstance(raw, (str, bytes)) else dict(raw)
            except (ValueError, TypeError) as exc:
                error = PartialRecordError(line, f"Invalid record: {exc}")
                errors.append(RecordError.from_error(batch.index, line, raw, error))
                continue
            if not isinstance(record, dict) or not record.get(id_type):
                error = PartialRecordError(line, f"Missing {id_type}")
                errors.append(RecordError.from_error(batch.index, line, raw, error))
                continue

            conversion = {"ordinal": timestamp, "timestampMicros": timestamp, **template}
            conversion[id_type] = record[id_type]
            for key in ("ordinal", "timestampMicros", "value", "quantity"):
                if record.get(key) is not None:
                    conversion[key] = record[key]
            if custom_variables:
                conversion["customVariables"] = [
                    {"type": variable, "value": record[variable]}
                    for variable in custom_variables
                    if variable in record
                ]
            conversions.append(conversion)
            sent.append((line, raw))

        return conversions, sent, errors

    @staticmethod
    def _collect_failures(
        batch_index: int,
        sent: List[Tuple[int, Any]],
        statuses: List[Dict[str, Any]],
    ) -> List[RecordError]:
        errors = []
        for (line, raw), status in zip(sent, statuses):
            status_errors = status.get("errors") or []
            if not status_errors:
                continue
            reason = "; ".join(f"{e.get('code')}: {e.get('message')}" for e in status_errors)
            errors.append(RecordError.from_error(batch_index, line, raw, PartialRecordError(line, reason)))
        return errors
