'''
Errors raised by the filter engine and by the registry that hosts it.
'''


class BloomFilterError(Exception):
    message = 'bloom filter error'

    def __init__(self, message=None):
        super().__init__(message or self.message)

    def __str__(self):
        return self.args[0]


class InvalidParameters(BloomFilterError, ValueError):
    message = 'Invalid filter parameters'


class FilterTooLarge(BloomFilterError, ValueError):
    message = 'Filter size is too large'


class ElementNotFound(BloomFilterError, KeyError):
    message = 'Element definitely not in the set'


class CorruptRecord(BloomFilterError, ValueError):
    message = 'malformed filter record'


# host-level errors, these never come out of the engine itself
class RegistryError(Exception):
    pass


class Unauthenticated(RegistryError):
    pass


class FilterExists(RegistryError):
    pass


class FilterNotFound(RegistryError):
    pass


class PermissionDenied(RegistryError):
    pass
