"""envchain unit and functional tests"""
