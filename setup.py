from setuptools import setup, find_namespace_packages

setup(
    name='rr-ofdma-sim',
    version='0.1',
    packages=find_namespace_packages(include=['rrofdma', 'rrofdma.*']),
    install_requires=[
        'matplotlib',
        'numpy',
        'pandas',
        'simpy',
        'setuptools',
    ],
    extras_require={
        'test': ['pytest'],
    },)
