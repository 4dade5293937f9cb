''' Wrapper module around the msgspec JSON encoder and decoder, providing
    the equivalent of :func:`json.loads` and :func:`json.dumps`. Note that
    :func:`dumps` returns bytes, not a string.
'''

import msgspec


encoder = msgspec.json.Encoder()
decoder = msgspec.json.Decoder()

dumps = encoder.encode
loads = decoder.decode

DecodeError = msgspec.DecodeError

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
