"""
setup.py for the osqpmodel Python package
"""
from pathlib import Path
from setuptools import setup


# Read README for long description
readme_path = Path(__file__).parent / 'README.md'
long_description = readme_path.read_text(encoding='utf-8') if readme_path.exists() else ''

setup(
    name='osqpmodel',
    version='0.1.0',
    author='osqpmodel Contributors',
    description='Algebraic modelling layer for convex QPs with incremental OSQP re-solves',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=['osqpmodel'],
    package_dir={'osqpmodel': 'osqpmodel'},
    install_requires=[
        'numpy>=1.20.0',
        'scipy>=1.7.0',
        'osqp>=1.0.0',
    ],
    extras_require={
        'test': [
            'absl-py>=1.0.0',
            'pytest>=7.0',
        ],
    },
    python_requires='>=3.8',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Mathematics',
    ],
    zip_safe=False,
)
