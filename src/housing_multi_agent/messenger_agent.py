"""
Messenger agent: drafts inquiries for listings and sends them.

Sending and logging in are side effects delegated to injected collaborators
(``MessageSender`` and ``LoginHandler``). The agent owns the message
template and the on-disk session record.
"""

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional, List, Protocol

from pydantic import BaseModel, ConfigDict, Field

from .base_agent import ToolServerAgent
from .config import Config
from .listings import Listing, ListingStore
from .messages import Capability
from .observers import AgentObserver
from .tools import ToolResult, json_result, error_result


class SessionData(BaseModel):
    """Saved browser session for the messaging site."""
    model_config = ConfigDict(populate_by_name=True)

    cookies: List[Dict[str, Any]] = []
    local_storage: Dict[str, str] = Field(default_factory=dict, alias="localStorage")
    session_storage: Dict[str, str] = Field(default_factory=dict, alias="sessionStorage")
    user_agent: str = Field(default="", alias="userAgent")
    timestamp: float = Field(default_factory=time.time)
    is_valid: bool = Field(default=True, alias="isValid")


class LoginHandler(Protocol):
    """Performs an interactive login and returns the captured session."""

    async def login(self) -> SessionData:
        ...


class MessageSender(Protocol):
    """Delivers a message to a listing's poster using a saved session."""

    async def send(self, listing: Listing, message: str, session: SessionData) -> None:
        ...


class SessionManager:
    """JSON-file session record with a maximum age."""

    def __init__(self, path: str, max_age_hours: int, logger: logging.Logger):
        self.path = Path(path)
        self.max_age_seconds = max_age_hours * 3600
        self.logger = logger

    def load_session(self) -> Optional[SessionData]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as file:
                return SessionData.model_validate(json.load(file))
        except Exception as e:
            self.logger.error(f"Error loading session: {str(e)}")
            return None

    def save_session(self, session: SessionData) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as file:
            json.dump(session.model_dump(by_alias=True), file, indent=2)
        self.logger.info("Session saved")

    def load_valid_session(self) -> Optional[SessionData]:
        """The saved session, or None when missing, invalidated or expired."""
        session = self.load_session()
        if session is None or not session.is_valid:
            return None
        if time.time() - session.timestamp > self.max_age_seconds:
            self.logger.info("Session expired, login required")
            return None
        return session

    def has_valid_session(self) -> bool:
        return self.load_valid_session() is not None

    def clear_session(self) -> None:
        """Mark any saved session invalid."""
        if self.path.exists():
            self.save_session(SessionData(is_valid=False))
            self.logger.info("Session cleared")

    def get_session_info(self) -> Dict[str, Any]:
        session = self.load_session()
        if session is None:
            return {"hasSession": False}
        return {
            "hasSession": True,
            "isValid": session.is_valid,
            "timestamp": datetime.fromtimestamp(session.timestamp, timezone.utc).isoformat(),
            "ageHours": round((time.time() - session.timestamp) / 3600),
            "cookieCount": len(session.cookies),
            "localStorageKeys": len(session.local_storage),
            "sessionStorageKeys": len(session.session_storage),
        }


class DraftMessageArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    listing_id: str = Field(alias="listingId", description="The ID of the listing to message about")
    user_message: Optional[str] = Field(
        default=None, alias="userMessage",
        description="Optional custom message. Without one a professional inquiry is generated."
    )
    include_questions: bool = Field(default=True, alias="includeQuestions")


class SendMessageArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    listing_id: str = Field(alias="listingId")
    message: str = Field(min_length=1)


class ListingIdArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    listing_id: str = Field(alias="listingId")


class NoArgs(BaseModel):
    pass


class MessengerAgent(ToolServerAgent):
    """Drafts and sends listing inquiries and manages the messaging session."""

    def __init__(self, config: Config, store: ListingStore, logger: logging.Logger,
                 sender: Optional[MessageSender] = None,
                 login_handler: Optional[LoginHandler] = None,
                 observer: Optional[AgentObserver] = None):
        """Initialize messenger agent."""
        self.config = config
        self.store = store
        self.sender = sender
        self.login_handler = login_handler
        self.sessions = SessionManager(
            config.messaging.session_file, config.messaging.session_max_age_hours, logger
        )
        super().__init__(config.agents.messenger.name, logger, None, observer)

    def register_tools(self) -> None:
        self.register_function_tool(
            "draft_message", "Draft a message for a specific housing listing",
            self._draft_message_tool, DraftMessageArgs
        )
        self.register_function_tool(
            "send_message", "Send a message to a listing's poster",
            self._send_message_tool, SendMessageArgs
        )
        self.register_function_tool(
            "get_listing_details", "Get details for a specific listing by ID",
            self._listing_details_tool, ListingIdArgs
        )
        self.register_function_tool(
            "session_login", "Log in to the messaging site and save the session",
            self._session_login_tool, NoArgs
        )
        self.register_function_tool(
            "session_check", "Check if a valid messaging session exists",
            self._session_check_tool, NoArgs
        )
        self.register_function_tool(
            "session_clear", "Clear the saved messaging session",
            self._session_clear_tool, NoArgs
        )

    def get_capabilities(self) -> List[Capability]:
        return [
            Capability(
                name="draft_message",
                description="Draft professional messages for housing listings",
                parameters={"listingId": "string", "userMessage": "string (optional)",
                            "includeQuestions": "boolean (optional)"}
            ),
            Capability(
                name="send_message",
                description="Send messages to listing posters",
                parameters={"listingId": "string", "message": "string"}
            ),
            Capability(
                name="get_listing_details",
                description="Get detailed information about a specific listing",
                parameters={"listingId": "string"}
            ),
            Capability(name="session_login", description="Log in and save the messaging session"),
            Capability(name="session_check", description="Check if a valid messaging session exists"),
            Capability(name="session_clear", description="Clear the saved messaging session"),
        ]

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status["sender_configured"] = self.sender is not None
        status["has_valid_session"] = self.sessions.has_valid_session()
        return status

    def can_send(self, listing: Listing) -> bool:
        return self.sender is not None and listing.source in self.config.messaging.sendable_sources

    async def _draft_message_tool(self, args: DraftMessageArgs) -> ToolResult:
        listing = self.store.get(args.listing_id)
        if listing is None:
            return error_result(f"Listing with ID {args.listing_id} not found")

        message = args.user_message or self.draft_message(listing, args.include_questions)
        return json_result({
            "listingId": listing.id,
            "listingTitle": listing.title,
            "listingUrl": listing.url,
            "listingSource": listing.source,
            "draftedMessage": message,
            "messageType": "seller" if listing.source in self.config.messaging.sendable_sources else "landlord",
            "canSend": self.can_send(listing),
        })

    async def _send_message_tool(self, args: SendMessageArgs) -> ToolResult:
        listing = self.store.get(args.listing_id)
        if listing is None:
            return error_result(f"Listing with ID {args.listing_id} not found")
        if listing.source not in self.config.messaging.sendable_sources:
            return error_result(f"Cannot send messages to {listing.source} listings")
        if self.sender is None:
            return error_result("No message sender configured")

        result = await self.send_message(listing, args.message)
        return json_result({"listingTitle": listing.title, **result})

    async def _listing_details_tool(self, args: ListingIdArgs) -> ToolResult:
        listing = self.store.get(args.listing_id)
        if listing is None:
            return error_result(f"Listing with ID {args.listing_id} not found")
        return json_result(listing.to_dict())

    async def _session_login_tool(self, args: NoArgs) -> ToolResult:
        if self.login_handler is None:
            return error_result("Login failed: no login handler configured")
        try:
            session = await self.login_handler.login()
            await asyncio.to_thread(self.sessions.save_session, session)
        except Exception as e:
            return error_result(f"Login failed: {str(e)}")
        return json_result({
            "success": True,
            "message": "Login successful! Session saved.",
            "sessionInfo": await asyncio.to_thread(self.sessions.get_session_info),
        })

    async def _session_check_tool(self, args: NoArgs) -> ToolResult:
        valid = await asyncio.to_thread(self.sessions.has_valid_session)
        return json_result({
            "hasValidSession": valid,
            "sessionInfo": await asyncio.to_thread(self.sessions.get_session_info),
            "message": "Valid session found" if valid else "No valid session - login required",
        })

    async def _session_clear_tool(self, args: NoArgs) -> ToolResult:
        try:
            await asyncio.to_thread(self.sessions.clear_session)
        except OSError as e:
            return error_result(f"Error clearing session: {str(e)}")
        return json_result({"success": True, "message": "Session cleared successfully"})

    def draft_message(self, listing: Listing, include_questions: bool = True) -> str:
        """Professional inquiry built from the listing's own details."""
        housing_type = listing.housing_type or "housing"
        message = f'Hi! I\'m interested in your {housing_type} listing "{listing.title}" for ${listing.price:g}'
        if listing.location:
            message += f" in {listing.location}"
        message += "."

        if include_questions:
            description = listing.description.lower()
            questions = []
            if not listing.available_date:
                questions.append("When would this be available?")
            if listing.private_room and not listing.private_bath:
                questions.append("How many people would be sharing the bathroom?")
            if "lease" not in description and "term" not in description:
                questions.append("What is the lease term?")
            if "deposit" not in description:
                questions.append("What is the security deposit?")
            if listing.source in self.config.messaging.sendable_sources:
                questions.append("Would it be possible to schedule a viewing?")

            if questions:
                message += "\n\nI have a few questions:\n"
                message += "".join(f"{i}. {question}\n" for i, question in enumerate(questions, 1))

        message += "\nThank you for your time!"
        return message

    async def send_message(self, listing: Listing, message: str) -> Dict[str, Any]:
        """Deliver ``message`` through the sender using the saved session."""
        result: Dict[str, Any] = {"success": False, "listingId": listing.id, "message": message}

        session = await asyncio.to_thread(self.sessions.load_valid_session)
        if session is None:
            result["error"] = "No valid session found. Please run session_login first."
            return result

        try:
            await self.sender.send(listing, message, session)
        except Exception as e:
            self.logger.error(f"Error sending message for listing {listing.id}: {str(e)}")
            result["error"] = str(e) or e.__class__.__name__
            return result

        self.logger.info(f"Message sent for listing {listing.id}")
        result["success"] = True
        result["timestamp"] = datetime.now(timezone.utc).isoformat()
        return result
