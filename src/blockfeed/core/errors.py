class BlockFeedError(Exception):
    pass


class DataSourceError(BlockFeedError):
    pass


class RateLimitError(DataSourceError):
    pass


class MalformedDataError(BlockFeedError):
    pass


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, RateLimitError):
        return True
    return "rate limit" in str(exc).lower()
