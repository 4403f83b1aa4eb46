#!/usr/bin/env python3

from pathlib import Path
from setuptools import setup, find_packages

_metadata: dict[str, str] = {}
metadata_path = Path(__file__).parent / "cassmon" / "metadata.py"
with metadata_path.open("r", encoding="utf-8") as metadata_file:
    exec(metadata_file.read(), _metadata)

# Read requirements from requirements.txt
with open('requirements.txt', 'r') as f:
    requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Read README for long description
with open('README.md', 'r', encoding='utf-8') as f:
    long_description = f.read()

setup(
    name=_metadata["APP_NAME"],
    version=_metadata["VERSION"],
    description=_metadata["DESCRIPTION"],
    long_description=long_description,
    long_description_content_type='text/markdown',
    license='MIT',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    install_requires=requirements,
    extras_require={
        'test': ['pytest>=7.0', 'pytest-mock>=3.10', 'pytest-cov>=4.0'],
    },
    entry_points={
        'console_scripts': [
            f"{_metadata['APP_NAME']}=cassmon.cli:app",
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Database',
        'Topic :: System :: Monitoring',
    ],
    keywords='cassandra jmx jolokia metrics monitoring nodetool',
)
