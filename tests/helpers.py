"""
Test helpers - Controllable clock, self-describing test tokens and an
in-process marketplace server.
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import httpx

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def make_token(expires_at: datetime | None, subject: str = "u1") -> str:
    """Build an unsigned three-segment token with an exp claim."""
    header = _b64(json.dumps({"alg": "HS256", "typ": "JWT"}).encode())
    claims: dict = {"sub": subject}
    if expires_at is not None:
        claims["exp"] = int(expires_at.timestamp())
    payload = _b64(json.dumps(claims).encode())
    return f"{header}.{payload}.{_b64(b'signature')}"


def token_expiring_in(clock: FakeClock, **delta: float) -> str:
    return make_token(clock() + timedelta(**delta))


class FakeMarketplace:
    """
    In-process stand-in for the marketplace API, served via httpx.MockTransport.

    Every verification code is "123456". Tokens are issued against ``clock``
    and tracked so logout and revocation can be observed.
    """

    CODE = "123456"

    def __init__(self, clock=None, token_lifetime: timedelta = timedelta(hours=1)) -> None:
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.token_lifetime = token_lifetime
        self.users: dict[str, dict] = {}
        self.pending: dict[str, dict] = {}
        self.tokens: dict[str, str] = {}
        self.rotate_on_profile = False
        self.offline = False
        self.calls: list[tuple[str, str]] = []
        self._issued = 0

    def add_user(self, email: str, password: str, role: str = "customer") -> dict:
        user = {"_id": f"u{len(self.users) + 1}", "email": email, "role": role, "password": password}
        self.users[email] = user
        return user

    def issue(self, email: str) -> str:
        self._issued += 1
        token = make_token(self.clock() + self.token_lifetime, subject=f"{email}#{self._issued}")
        self.tokens[token] = email
        return token

    def revoke_all(self) -> None:
        self.tokens.clear()

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self, base_url: str = "https://api.test/api", **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=base_url, transport=self.transport(), **kwargs)

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        if self.offline:
            raise httpx.ConnectError("server offline", request=request)

        body = json.loads(request.content) if request.content else {}
        auth = request.headers.get("Authorization", "")
        token = auth.removeprefix("Bearer ") if auth else None

        if path.endswith("/auth/login"):
            user = self.users.get(body.get("email"))
            if user is None or user["password"] != body.get("password"):
                return httpx.Response(401, json={"message": "Invalid email or password"})
            return httpx.Response(200, json={"token": self.issue(user["email"]), "user": _public(user)})

        if path.endswith("/auth/register"):
            return self._register(body)

        if path.endswith("/auth/logout"):
            self.tokens.pop(token, None)
            return httpx.Response(200, json={"message": "Logged out"})

        email = self.tokens.get(token) if token else None
        if email is None:
            return httpx.Response(401, json={"message": "Not authorized"})

        if path.endswith("/profile"):
            payload = {"user": _public(self.users[email])}
            if self.rotate_on_profile:
                payload["token"] = self.issue(email)
            return httpx.Response(200, json=payload)

        return httpx.Response(200, json={"items": []})

    def _register(self, body: dict) -> httpx.Response:
        email = body.get("email")
        if email in self.users:
            return httpx.Response(400, json={"message": "User already exists"})
        if "otp" not in body:
            self.pending[email] = body
            return httpx.Response(
                200, json={"message": "Verification code sent to your email", "email": email}
            )
        if email not in self.pending or body["otp"] != self.CODE:
            return httpx.Response(400, json={"message": "Invalid verification code"})
        del self.pending[email]
        user = self.add_user(email, body["password"], body["role"])
        return httpx.Response(201, json={"token": self.issue(email), "user": _public(user)})


def _public(user: dict) -> dict:
    return {k: v for k, v in user.items() if k != "password"}
