"""
Setup script for pricing_analytics package.
"""

from setuptools import setup, find_packages

setup(
    name="retail-pricing-analytics",
    version="1.0.0",
    description="Moteur d'analyse pricing : élasticité, recommandations de prix et projections de revenus",
    author="Retail Analytics Team",
    packages=find_packages(include=["pricing_analytics", "pricing_analytics.*"]),
    install_requires=[
        "supabase>=2.0.0",
        "pandas>=2.0.0",
        "numpy>=1.24.0",
        "python-dotenv>=1.0.0",
        "python-dateutil>=2.8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    python_requires=">=3.9",
)
