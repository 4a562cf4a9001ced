from enum import Enum


class SpecificationVersion(Enum):
    """
    Pact specification revisions, governing which matchers and body
    representations a contract may carry.
    """
    V1 = '1.0.0'
    V2 = '2.0.0'
    V3 = '3.0.0'
    V4 = '4.0'

    @property
    def major(self):
        return int(self.value.split('.')[0])

    def __lt__(self, other):
        return self.major < other.major

    def __le__(self, other):
        return self.major <= other.major

    def __gt__(self, other):
        return self.major > other.major

    def __ge__(self, other):
        return self.major >= other.major

    def __str__(self):
        return self.name

    @classmethod
    def parse(cls, version):
        """
            Accept a SpecificationVersion, a version string ('2.0.0', '3.0')
            or a major number (3).
        """
        if isinstance(version, cls):
            return version
        try:
            major = int(str(version).lstrip('vV').split('.')[0])
        except ValueError:
            raise ValueError('unknown pact specification version %r' % (version,))
        for member in cls:
            if member.major == major:
                return member
        raise ValueError('unknown pact specification version %r' % (version,))
