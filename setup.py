from setuptools import find_packages, setup

setup(
    name='legacy-queue-compat',
    version='1.0.0',
    description='Legacy job queue API on top of an asyncio Redis queue engine',
    packages=find_packages(exclude=[
        'queuecompat.test',
        'queuecompat.test.*',
    ]),
    python_requires='>=3.9',
    install_requires=[
        'apscheduler>=3.9,<4',
        'python-dateutil',
        'redis>=5.0.1',
        'simplejson',
    ],
    extras_require={
        'test': [
            'fakeredis',
            'pytest',
        ],
    },
)
