"""
Setup script for UDP Service Discovery.
"""

from setuptools import setup, find_packages
import os

# Read the README file for long description
def read_readme():
    """Read README.md file."""
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return "Key-authenticated service discovery over UDP broadcast."

# Read requirements from requirements.txt
def read_requirements():
    """Read requirements from requirements.txt."""
    requirements_path = os.path.join(os.path.dirname(__file__), 'requirements.txt')
    requirements = []
    if os.path.exists(requirements_path):
        with open(requirements_path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#'):
                    requirements.append(line)
    return requirements

setup(
    name="udp-discovery",
    version="1.0.0",
    author="UDP Discovery Development Team",
    author_email="dev@udpdiscovery.example.com",
    description="Key-authenticated service discovery over UDP broadcast",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    url="https://github.com/example/udp-discovery",
    packages=find_packages(exclude=['tests*']),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Internet",
        "Topic :: System :: Networking",
    ],
    python_requires=">=3.9",
    install_requires=read_requirements() or [
        "rich>=13.0.0",
        "netifaces>=0.11.0",
        "PyYAML>=6.0,<7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "mypy>=1.0.0",
            "hypothesis>=6.80.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "udp-discovery-server=udp_discovery.server.main:main",
            "udp-discovery-client=udp_discovery.client.main:main",
        ],
    },
    project_urls={
        "Bug Reports": "https://github.com/example/udp-discovery/issues",
        "Source": "https://github.com/example/udp-discovery",
    },
    keywords="discovery, udp, broadcast, networking, lan",
    zip_safe=False,
)
