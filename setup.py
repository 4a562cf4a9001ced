from setuptools import setup

VERSION = "0.1.0"
REQUIRES = ["requests>=2.6.0", "urllib3>=1.26"]
TEST_REQUIRES = ["pytest", "mock", "requests-mock"]

setup(
    name='pactdsl',
    packages=['pactdsl'],
    version=VERSION,
    description='Consumer driven contract testing library: interaction builder and broker resolution.',
    keywords=['testing', 'pact', 'contract'],
    classifiers=[],
    python_requires='>=3.6',
    install_requires=REQUIRES,
    extras_require={'test': TEST_REQUIRES})
