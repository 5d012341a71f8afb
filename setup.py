from setuptools import setup

setup(
    name='pybioinf',
    version='0.1.0',
    description='Genomic interval containers, tag coverage and region sampling',
    install_requires=['pandas', 'numpy', 'pyyaml'],
    extras_require={
        'progress': ['rich', 'tqdm'],
        'test': ['pytest'],
    },
    packages=['pybioinf'],
    python_requires='>=3.10',
    zip_safe=False
)
