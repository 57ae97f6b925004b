"""Google Calendar free/busy adapter."""

import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

from catchup.core.availability import AvailabilityRules, AvailabilityWindow, BusyBlock, find_free_windows
from catchup.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]


class GoogleAccount:
    """OAuth token for one linked Google account, kept in <config_folder>/token.json."""

    def __init__(self, config_folder: str, client_secret_file: str = ""):
        self.folder = Path(config_folder).expanduser()
        self.token_path = self.folder / "token.json"
        self.client_secret_file = client_secret_file

    @property
    def name(self) -> str:
        return self.folder.name

    def _store(self, creds) -> None:
        self.folder.mkdir(parents=True, exist_ok=True)
        self.token_path.write_text(creds.to_json())
        self.token_path.chmod(0o600)

    def credentials(self):
        """Stored credentials, refreshed when expired. None when not linked or refresh fails."""
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials

        if not self.token_path.exists():
            logger.warning(f"Account {self.name} is not linked, run 'catchup cal-auth'")
            return None

        creds = Credentials.from_authorized_user_file(str(self.token_path), SCOPES)
        if not (creds.expired and creds.refresh_token):
            return creds
        try:
            creds.refresh(Request())
        except Exception as e:
            logger.warning(f"Token refresh failed for {self.name}: {e}")
            return None
        self._store(creds)
        return creds

    def authorize(self) -> bool:
        """Browser OAuth flow; stores the token. False when no client secret is available."""
        from google_auth_oauthlib.flow import InstalledAppFlow

        secret = Path(self.client_secret_file).expanduser() if self.client_secret_file else None
        if secret is None or not secret.exists():
            logger.error(f"Client secret file missing: {self.client_secret_file or '(not configured)'}")
            return False

        flow = InstalledAppFlow.from_client_secrets_file(str(secret), SCOPES)
        self._store(flow.run_local_server(port=0))
        return True


class GoogleCalendarAdapter:
    """Busy time for one Google account, optionally limited to named calendars."""

    def __init__(
        self,
        account: GoogleAccount,
        calendars: list[str] | None = None,
        timezone: str = "America/Toronto",
    ):
        self.account = account
        self.calendars = calendars
        self.timezone = timezone

    @property
    def label(self) -> str:
        return self.account.name

    def _build_service(self):
        from googleapiclient.discovery import build

        creds = self.account.credentials()
        if creds is None:
            raise UpstreamUnavailable(f"Google Calendar not authenticated for {self.label}")
        return build("calendar", "v3", credentials=creds)

    def _calendar_ids(self, service) -> list[str]:
        if not self.calendars:
            return ["primary"]

        by_name = {
            entry["summary"]: entry["id"]
            for entry in service.calendarList().list().execute().get("items", [])
        }
        missing = [name for name in self.calendars if name not in by_name]
        if missing:
            logger.warning(f"Calendars not found for {self.label}: {', '.join(missing)}")
        return [by_name[name] for name in self.calendars if name in by_name] or ["primary"]

    def fetch_busy(self, start_date: date, end_date: date) -> list[BusyBlock]:
        """Busy blocks between two dates (inclusive). Raises UpstreamUnavailable."""
        service = self._build_service()
        tz = ZoneInfo(self.timezone)
        body = {
            "timeMin": datetime.combine(start_date, time(0, 0), tzinfo=tz).isoformat(),
            "timeMax": datetime.combine(end_date + timedelta(days=1), time(0, 0), tzinfo=tz).isoformat(),
            "timeZone": self.timezone,
        }
        try:
            body["items"] = [{"id": cal_id} for cal_id in self._calendar_ids(service)]
            result = service.freebusy().query(body=body).execute()
        except Exception as e:
            raise UpstreamUnavailable(f"Google Calendar API error for {self.label}: {e}") from e

        blocks = []
        for cal_id, data in result.get("calendars", {}).items():
            if data.get("errors"):
                logger.warning(f"Free/busy errors for {self.label} ({cal_id}): {data['errors']}")
            for item in data.get("busy", []):
                blocks.append(
                    BusyBlock(
                        start=datetime.fromisoformat(item["start"].replace("Z", "+00:00")).astimezone(tz),
                        end=datetime.fromisoformat(item["end"].replace("Z", "+00:00")).astimezone(tz),
                    )
                )
        return sorted(blocks, key=lambda b: b.start)

    def list_calendars(self) -> list[tuple[str, str]]:
        """(accessRole, summary) for every calendar the account can see."""
        service = self._build_service()
        try:
            items = service.calendarList().list().execute().get("items", [])
        except Exception as e:
            raise UpstreamUnavailable(f"Google Calendar API error for {self.label}: {e}") from e
        return [(entry.get("accessRole", ""), entry.get("summary", "")) for entry in items]


class GoogleAvailabilityProvider:
    """
    Free windows per user from all of their linked Google accounts.

    Implements AvailabilityProvider protocol. Busy time from every account is
    merged, then the user's availability rules are applied.
    """

    def __init__(
        self,
        adapters: dict[str, list[GoogleCalendarAdapter]],
        rules: AvailabilityRules | None = None,
        timezone: str = "America/Toronto",
    ):
        self._adapters = adapters
        self.rules = rules or AvailabilityRules()
        self.timezone = timezone

    @classmethod
    def from_config(cls, config) -> "GoogleAvailabilityProvider":
        adapters: dict[str, list[GoogleCalendarAdapter]] = {}
        for account in config.calendar_accounts:
            adapters.setdefault(account.user_id, []).append(
                GoogleCalendarAdapter(
                    GoogleAccount(account.config_folder, config.google_client_secret_file),
                    calendars=account.calendars or None,
                    timezone=config.timezone,
                )
            )
        return cls(adapters, config.availability_rules(), config.timezone)

    def adapters_for(self, user_id: str) -> list[GoogleCalendarAdapter]:
        return self._adapters.get(user_id, [])

    def get_free_windows(self, user_id: str, start_date: date, end_date: date) -> list[AvailabilityWindow]:
        adapters = self.adapters_for(user_id)
        if not adapters:
            raise UpstreamUnavailable(f"No calendar account linked for user {user_id}")

        busy = []
        for adapter in adapters:
            busy.extend(adapter.fetch_busy(start_date, end_date))

        return find_free_windows(
            busy,
            start_date,
            end_date,
            rules=self.rules,
            tz=ZoneInfo(self.timezone),
            timezone_name=self.timezone,
        )
