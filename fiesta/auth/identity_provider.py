"""Verification of Google sign-in tokens issued through Firebase."""
import logging
import os
import re
import time
from dataclasses import dataclass
from typing import Dict, Optional

import httpx
from dotenv import load_dotenv
from jose import jwt, JWTError

from fiesta.errors import InvalidCredential, ProviderNotConfigured, ProviderUnavailable

logger = logging.getLogger(__name__)

load_dotenv()

FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
GOOGLE_CERTS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)


@dataclass
class IdentityClaims:
    email: str
    display_name: Optional[str] = None
    picture_url: Optional[str] = None


class FirebaseTokenVerifier:
    def __init__(self, project_id: Optional[str] = FIREBASE_PROJECT_ID, certs_url: str = GOOGLE_CERTS_URL):
        self.project_id = project_id
        self.certs_url = certs_url
        self._certs: Dict[str, str] = {}
        self._certs_expire_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.project_id)

    async def _signing_certs(self) -> Dict[str, str]:
        if self._certs and time.time() < self._certs_expire_at:
            return self._certs

        try:
            async with httpx.AsyncClient(timeout=10) as client:
                response = await client.get(self.certs_url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderUnavailable("Identity provider is unavailable") from exc

        max_age = 3600
        match = re.search(r"max-age=(\d+)", response.headers.get("cache-control", ""))
        if match:
            max_age = int(match.group(1))

        self._certs = response.json()
        self._certs_expire_at = time.time() + max_age
        return self._certs

    async def verify(self, token: str) -> IdentityClaims:
        if not self.configured:
            logger.warning("Google sign-in attempted but FIREBASE_PROJECT_ID is not set")
            raise ProviderNotConfigured("Google sign-in is not configured on this server")

        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise InvalidCredential("Invalid identity token") from exc

        certs = await self._signing_certs()
        cert = certs.get(header.get("kid", ""))
        if cert is None:
            raise InvalidCredential("Identity token was signed with an unknown key")

        try:
            claims = jwt.decode(
                token,
                cert,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=f"https://securetoken.google.com/{self.project_id}",
                options={"verify_at_hash": False},
            )
        except JWTError as exc:
            logger.warning("Rejected identity token: %s", exc)
            raise InvalidCredential("Invalid or expired identity token") from exc

        email = claims.get("email")
        if not email:
            raise InvalidCredential("Identity token does not carry an email")

        return IdentityClaims(
            email=email,
            display_name=claims.get("name"),
            picture_url=claims.get("picture"),
        )


_verifier = FirebaseTokenVerifier()


def get_identity_verifier() -> FirebaseTokenVerifier:
    return _verifier
