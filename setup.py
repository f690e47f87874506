from setuptools import setup, find_packages

setup(
    name="convgen",
    version="1.0.0",
    description="convgen: Structural Type-Conversion Synthesizer",
    author="convgen Team",
    packages=find_packages(include=["convgen", "convgen.*"]),
    install_requires=[
        "networkx>=3.1",
        "pyyaml>=6.0.0",
        "pydantic>=2.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.10",
    ],
    entry_points={
        "console_scripts": [
            "convgen=convgen.cli:main",
        ],
    },
)
