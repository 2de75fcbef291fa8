"""Tasks domain - Print order queue"""
