from starlette.types import ASGIApp, Receive, Scope, Send


class TrustedProxiesMiddleware:
    """
    Resolve the client IP from X-Forwarded-For given a fixed number of trusted proxies.

    The resolved address feeds rate limiting and the trusted-device fingerprint, so only
    the hop added by the outermost trusted proxy is believed.
    """

    def __init__(self, app: ASGIApp, proxies_count: int = 1) -> None:
        self.app = app
        self.proxies_count = proxies_count

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.proxies_count > 0:
            headers = dict(scope.get("headers", []))
            forwarded = headers.get(b"x-forwarded-for", b"").decode()
            hops = [ip.strip() for ip in forwarded.split(",") if ip.strip()]

            # "client, proxy1, proxy2": with N trusted proxies the client sits at -(N+1)
            if len(hops) > self.proxies_count:
                port = scope["client"][1] if scope.get("client") else 0
                scope["client"] = (hops[-(self.proxies_count + 1)], port)

        await self.app(scope, receive, send)
