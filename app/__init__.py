"""HomeServe API - order lifecycle backend for the home-services marketplace"""
