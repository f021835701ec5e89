from setuptools import find_namespace_packages, setup

setup(
    name="deckcast-backend",
    version="0.1.0",
    package_dir={"": "backend"},
    packages=find_namespace_packages("backend", include=["services*", "shared*"]),
    py_modules=["app"],
    python_requires=">=3.10",
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic>=2",
        "python-multipart",
        "aiohttp",
        "openai>=1.0",
        "python-dotenv",
        "PyYAML",
        "Pillow",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
    include_package_data=True,
    description="Backend package for DeckCast (narrated video rendering from slide decks)",
)
