"""Classes domain - Classes, choir groups and songs"""
