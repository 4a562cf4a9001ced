"""Provides API for naming service providers"""


class Provider(object):

    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return 'Provider(%r)' % self.name
