"""makeSnapshot: create or replace the snapshot of a vRA virtual machine."""

__version__ = '0.9.2'
