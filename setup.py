from setuptools import setup, find_packages

setup(
    name="waymark",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "playwright>=1.40.0",
        "rich",
        "beautifulsoup4>=4.12.0",
        "dataclasses-json>=0.6.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio",
        ],
    },
    python_requires=">=3.10",
    author="Webisoft",
    author_email="info@webisoft.com",
    description="State tracking and interruptible iteration for autonomous web exploration agents",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    url="https://github.com/floor-licker/waymark",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
