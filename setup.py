from setuptools import find_packages, setup

setup(
    name="zinc",
    version="0.1.0",
    description="Server-rendered Python components that stay live in the browser",
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=find_packages("src"),
    package_data={"zinc": ["templates/error/*.html"]},
    install_requires=[
        "starlette>=0.37",
        "uvicorn>=0.29",
        "watchfiles>=0.21",
        "rich>=13.0",
        "rich-click>=1.7",
        "jinja2>=3.1",
        "beautifulsoup4>=4.12",
        "markupsafe>=2.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "httpx>=0.27",
            "click>=8.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "zinc=zinc.cli.main:cli",
        ],
    },
    zip_safe=False,
)
