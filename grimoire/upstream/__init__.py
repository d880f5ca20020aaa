from grimoire.upstream.gateway import UpstreamGateway

__all__ = ["UpstreamGateway"]
