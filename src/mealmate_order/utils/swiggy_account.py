"""
Swiggy account - login session and address book for one app user.
"""

import json
import logging
import re
from datetime import datetime
from typing import Callable, List, Optional

from ..core.config import Settings, get_settings
from ..core.db import get_db_connection, init_database, resolve_db_path
from ..core.errors import RequestValidationError, SessionError, ToolError
from ..core.retry_utils import RetryConfig, retry_with_backoff
from ..models.api import AuthResult, DeliveryAddress, OtpResult, SwiggySession
from .instamart_client import InstamartClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

ClientFactory = Callable[[Optional[str], Optional[str]], InstamartClient]


def normalize_phone(phone: str) -> str:
    """Return the phone number as +91XXXXXXXXXX."""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    if len(digits) != 10:
        raise RequestValidationError("Please enter a valid 10-digit phone number", reason="invalidPhone")
    return f"+91{digits}"


class SwiggyAccount:
    """Session storage, OTP login and cached addresses for a user."""

    def __init__(
        self,
        user_id: str,
        db_path: Optional[str] = None,
        client_factory: Optional[ClientFactory] = None,
        settings: Optional[Settings] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.user_id = user_id
        self.settings = settings or get_settings()
        self.db_path = resolve_db_path(db_path or self.settings.db_path)
        self.retry_config = retry_config or RetryConfig()
        self._client_factory = client_factory or self._default_client
        init_database(self.db_path)

    def _default_client(self, access_token: Optional[str], address_id: Optional[str]) -> InstamartClient:
        return InstamartClient(
            access_token=access_token,
            address_id=address_id,
            base_url=self.settings.instamart_url,
            timeout=self.settings.request_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def send_otp(self, phone: str) -> OtpResult:
        normalized = normalize_phone(phone)
        logger.info(f"[ACCOUNT] Sending OTP for user {self.user_id}")
        return self._client_factory(None, None).send_otp(normalized)

    def verify_otp(self, phone: str, otp: str) -> AuthResult:
        normalized = normalize_phone(phone)
        if not re.fullmatch(r"\d{6}", otp or ""):
            raise RequestValidationError("Please enter the 6-digit OTP", reason="invalidOtp")

        auth = self._client_factory(None, None).verify_otp(normalized, otp)
        if not auth.success:
            logger.warning(f"[ACCOUNT] OTP verification failed for user {self.user_id}: {auth.error}")
            return auth

        self._save_session(SwiggySession.from_auth(self.user_id, normalized, auth))
        logger.info(f"[ACCOUNT] Swiggy session stored for user {self.user_id}")
        return auth

    def session(self) -> SwiggySession:
        """
        Active session for the user.

        An expired session is refreshed once when a refresh token is stored.

        Raises:
            SessionError: no usable session
        """
        session = self._load_session()
        if session is None or not session.is_active:
            raise SessionError("Swiggy account not connected. Please connect your Swiggy account first.")

        if session.is_expired():
            if not session.refresh_token:
                self.disconnect()
                raise SessionError()
            auth = self._client_factory(None, None).refresh_access_token(session.refresh_token)
            if not auth.success:
                self.disconnect()
                raise SessionError()
            session = SwiggySession.from_auth(self.user_id, session.phone, auth).model_copy(
                update={"refresh_token": auth.refresh_token or session.refresh_token}
            )
            self._save_session(session)
            logger.info(f"[ACCOUNT] Refreshed Swiggy token for user {self.user_id}")

        return session

    def is_connected(self) -> bool:
        try:
            self.session()
        except SessionError:
            return False
        return True

    def disconnect(self) -> None:
        conn = get_db_connection(self.db_path)
        try:
            with conn:
                conn.execute("UPDATE swiggy_sessions SET is_active = 0 WHERE user_id = ?", (self.user_id,))
        finally:
            conn.close()
        logger.info(f"[ACCOUNT] Swiggy session deactivated for user {self.user_id}")

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def get_addresses(self, refresh: bool = False) -> List[DeliveryAddress]:
        """
        Saved delivery addresses, from cache unless `refresh` is set.

        A failed refresh falls back to the cached list when there is one.
        """
        cached = self._load_addresses()
        if cached and not refresh:
            return cached

        session = self.session()
        client = self._client_factory(session.access_token, None)
        try:
            addresses = retry_with_backoff(client.get_addresses, self.retry_config)()
        except SessionError:
            self.disconnect()
            raise
        except ToolError as e:
            if cached:
                logger.warning(f"[ACCOUNT] Address refresh failed, using {len(cached)} cached: {e.message}")
                return cached
            raise

        self._save_addresses(addresses)
        logger.info(f"[ACCOUNT] Stored {len(addresses)} addresses for user {self.user_id}")
        return addresses

    def find_address(self, address_id: str, refresh: bool = False) -> Optional[DeliveryAddress]:
        for address in self.get_addresses(refresh=refresh):
            if address.id == address_id:
                return address
        return None

    def default_address(self) -> Optional[DeliveryAddress]:
        addresses = self.get_addresses()
        for address in addresses:
            if address.is_default:
                return address
        return addresses[0] if addresses else None

    def cart_tools(self, address_id: Optional[str] = None) -> InstamartClient:
        """Cart tools authorised with the user's session."""
        return self._client_factory(self.session().access_token, address_id)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _save_session(self, session: SwiggySession) -> None:
        conn = get_db_connection(self.db_path)
        try:
            with conn:
                conn.execute("""
                    INSERT INTO swiggy_sessions
                    (user_id, swiggy_user_id, phone, access_token, refresh_token, expires_at, is_active, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        swiggy_user_id = excluded.swiggy_user_id,
                        phone = excluded.phone,
                        access_token = excluded.access_token,
                        refresh_token = excluded.refresh_token,
                        expires_at = excluded.expires_at,
                        is_active = excluded.is_active,
                        updated_at = excluded.updated_at
                """, (
                    session.user_id,
                    session.swiggy_user_id,
                    session.phone,
                    session.access_token,
                    session.refresh_token,
                    session.expires_at.isoformat() if session.expires_at else None,
                    1 if session.is_active else 0,
                    datetime.utcnow().isoformat(),
                ))
        finally:
            conn.close()

    def _load_session(self) -> Optional[SwiggySession]:
        conn = get_db_connection(self.db_path)
        try:
            row = conn.execute("SELECT * FROM swiggy_sessions WHERE user_id = ?", (self.user_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return SwiggySession(
            user_id=row["user_id"],
            swiggy_user_id=row["swiggy_user_id"],
            phone=row["phone"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_at=row["expires_at"],
            is_active=bool(row["is_active"]),
        )

    def _save_addresses(self, addresses: List[DeliveryAddress]) -> None:
        now = datetime.utcnow().isoformat()
        conn = get_db_connection(self.db_path)
        try:
            with conn:
                conn.execute("DELETE FROM swiggy_addresses WHERE user_id = ?", (self.user_id,))
                conn.executemany(
                    "INSERT INTO swiggy_addresses (user_id, address_id, payload, is_default, updated_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    [
                        (self.user_id, a.id, json.dumps(a.model_dump()), 1 if a.is_default else 0, now)
                        for a in addresses
                    ],
                )
        finally:
            conn.close()

    def _load_addresses(self) -> List[DeliveryAddress]:
        conn = get_db_connection(self.db_path)
        try:
            rows = conn.execute(
                "SELECT payload FROM swiggy_addresses WHERE user_id = ? ORDER BY is_default DESC, address_id",
                (self.user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [DeliveryAddress.model_validate(json.loads(row["payload"])) for row in rows]
