from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="mcp-rpc-server",
    version="0.1.0",
    author="Scott Wilcox",
    author_email="example@example.com",  # Replace with actual email
    description="A minimal Model Context Protocol server core: operation registry, session negotiation and stdio/HTTP transports",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/scottwilcox/mcp-rpc-server",
    project_urls={
        "Bug Tracker": "https://github.com/scottwilcox/mcp-rpc-server/issues",
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: GNU Affero General Public License v3",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Application Frameworks",
    ],
    packages=find_packages(include=["mcp_rpc", "mcp_rpc.*"]),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.25.0",
        "aiohttp>=3.8.0",
        "jsonschema>=4.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mcp-rpc-server=mcp_rpc.cli:main",
        ],
    },
)
