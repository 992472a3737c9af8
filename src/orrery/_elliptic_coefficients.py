"""
Coefficient tables for the elliptic integral routines.

The polynomial coefficients are Fukushima's minimax fits, centred on the
midpoint of each sub-interval of the parameter.  Each tuple lists the
coefficients in increasing powers of the offset from the centre and is
evaluated with Horner's scheme by :mod:`orrery.elliptic_integrals`.

References
----------
[1] T. Fukushima (2009), Fast computation of complete elliptic integrals and
    Jacobian elliptic functions, Celest. Mech. Dyn. Astron. 105, 305-328.
[2] T. Fukushima (2011), Precise and fast computation of general complete
    elliptic integral of second kind, Math. Comp. 80, 1725-1743.
[3] T. Fukushima (2011), Precise and fast computation of a general incomplete
    elliptic integral of third kind by half and double argument
    transformations, J. Comp. Appl. Math. 236, 1961-1975.
"""

import math

# Maclaurin series of q(mc) / mc where q is Jacobi's nome.
NOME_Q_SERIES = (
    1.0 / 16.0,
    1.0 / 32.0,
    21.0 / 1024.0,
    31.0 / 2048.0,
    6257.0 / 524288.0,
    10293.0 / 1048576.0,
    279025.0 / 33554432.0,
    483127.0 / 67108864.0,
    435506703.0 / 68719476736.0,
    776957575.0 / 137438953472.0,
    22417045555.0 / 4398046511104.0,
    40784671953.0 / 8796093022208.0,
    9569130097211.0 / 2251799813685248.0,
    17652604545791.0 / 4503599627370496.0,
    523910972020563.0 / 144115188075855872.0,
    976501268709949.0 / 288230376151711744.0,
)

# ========== COMPLETE INTEGRALS OF THE SECOND KIND ==========
# Series in mc of (K' - 1) / (pi / 2) and (K' - E') / (pi / 2), mc < 0.01.
BD_DKKC_SERIES = (
    1.0 / 4.0,
    9.0 / 64.0,
    25.0 / 256.0,
    1225.0 / 16384.0,
    3969.0 / 65536.0,
    53361.0 / 1048576.0,
    184041.0 / 4194304.0,
)

# Series in m of B / (pi / 2) and D / (pi / 2), m <= 0.01.
BD_B_SERIES = (
    1.0 / 2.0,
    1.0 / 16.0,
    3.0 / 128.0,
    25.0 / 2048.0,
    245.0 / 32768.0,
    1323.0 / 262144.0,
    7623.0 / 2097152.0,
    184041.0 / 67108864.0,
)
BD_D_SERIES = (
    1.0 / 2.0,
    3.0 / 16.0,
    15.0 / 128.0,
    175.0 / 2048.0,
    2205.0 / 32768.0,
    14553.0 / 262144.0,
    99099.0 / 2097152.0,
    2760615.0 / 67108864.0,
)
BD_DDDC_SERIES = BD_D_SERIES[:7]

# (K' - 1) / (pi / 2) and (K' - E') / (pi / 2) in mc - 0.05, 0.01 <= mc < 0.1.
BD_DKKC_POLYNOMIAL = (
    0.01286425658832983978282698630501405107893,
    0.26483429894479586582278131697637750604652,
    0.15647573786069663900214275050014481397750,
    0.11426146079748350067910196981167739749361,
    0.09202724415743445309239690377424239940545,
    0.07843218831801764082998285878311322932444,
    0.06935260142642158347117402021639363379689,
    0.06293203529021269706312943517695310879457,
    0.05821227592779397036582491084172892108196,
    0.05464909112091564816652510649708377642504,
    0.05191068843704411873477650167894906357568,
    0.04978344771840508342564702588639140680363,
    0.04812375496807025605361215168677991360500,
)
BD_DDDC_POLYNOMIAL = (
    0.02548395442966088473597712420249483947953,
    0.51967384324140471318255255900132590084179,
    0.20644951110163173131719312525729037023377,
    0.13610952125712137420240739057403788152260,
    0.10458014040566978574883406877392984277718,
    0.08674612915759188982465635633597382093113,
    0.07536380269617058326770965489534014190391,
    0.06754544594618781950496091910264174396541,
    0.06190939688096410201497509102047998554900,
    0.05771071515451786553160533778648705873199,
    0.05451217098672207169493767625617704078257,
    0.05204028407582600387265992107877094920787,
    0.05011532514520838441892567405879742720039,
)

# (upper bound of m, centre in mc, B coefficients, D coefficients); the
# polynomials are in (centre - mc).
BD_INTERVALS = (
    (
        0.1,
        0.95,
        (
            0.790401413584395132310045630540381158921005,
            0.102006266220019154892513446364386528537788,
            0.039878395558551460860377468871167215878458,
            0.021737136375982167333478696987134316809322,
            0.013960979767622057852185340153691548520857,
            0.009892518822669142478846083436285145400444,
            0.007484612400663335676130416571517444936951,
            0.005934625664295473695080715589652011420808,
            0.004874249053581664096949448689997843978535,
            0.004114606930310886136960940893002069423559,
            0.003550452989196176932747744728766021440856,
            0.003119229959988474753291950759202798352266,
        ),
        (
            0.800602040206397047799296975176819811774784,
            0.313994477771767756849615832867393028789057,
            0.205913118705551954501930953451976374435088,
            0.157744346538923994475225014971416837073598,
            0.130595077319933091909091103101366509387938,
            0.113308474489758568672985167742047066367053,
            0.101454199173630195376251916342483192174927,
            0.0929187842072974367037702927967784464949434,
            0.0865653801481680871714054745336652101162894,
            0.0817279846651030135350056216958053404884715,
            0.0779906657291070378163237851392095284454654,
            0.075080426851268007156477347905308063808848,
        ),
    ),
    (
        0.2,
        0.85,
        (
            0.80102406445284489393880821604009991524037,
            0.11069534452963401497502459778015097487115,
            0.047348746716993717753569559936346358937777,
            0.028484367255041422845322166419447281776162,
            0.020277811444003597057721308432225505126013,
            0.015965005853099119442287313909177068173564,
            0.013441320273553634762716845175446390822633,
            0.011871565736951439501853534319081030547931,
            0.010868363672485520630005005782151743785248,
            0.010231587232710564565903812652581252337697,
            0.009849585546666211201566987057592610884309,
            0.009656606347153765129943681090056980586986,
        ),
        (
            0.834232667811735098431315595374145207701720,
            0.360495281619098275577215529302260739976126,
            0.262379664114505869328637749459234348287432,
            0.223723944518094276386520735054801578584350,
            0.206447811775681052682922746753795148394463,
            0.199809440876486856438050774316751253389944,
            0.199667451603795274869211409350873244844882,
            0.204157558868236842039815028663379643303565,
            0.212387467960572375038025392458549025660994,
            0.223948914061499360356873401571821627069173,
            0.238708097425597860161720875806632864507536,
            0.256707203545463755643710021815937785120030,
        ),
    ),
    (
        0.3,
        0.75,
        (
            0.81259777291992049322557009456643357559904,
            0.12110961794551011284012693733241967660542,
            0.057293376831239877456538980381277010644332,
            0.038509451602167328057004166642521093142114,
            0.030783430301775232744816612250699163538318,
            0.027290564934732526869467118496664914274956,
            0.025916369289445198731886546557337255438083,
            0.025847203343361799141092472018796130324244,
            0.026740923539348854616932735567182946385269,
            0.028464314554825704963640157657034405579849,
            0.030995446237278954096189768338119395563447,
            0.034384369179940975864103666824736551261799,
            0.038738002072493935952384233588242422046537,
        ),
        (
            0.873152581892675549645633563232643413901757,
            0.420622230667770215976919792378536040460605,
            0.344231061559450379368201151870166692934830,
            0.331133021818721761888662390999045979071436,
            0.345277285052808411877017306497954757532251,
            0.377945322150393391759797943135325823338761,
            0.427378012464553880508348757311170776829930,
            0.494671744307822405584118022550673740404732,
            0.582685115665646200824237214098764913658889,
            0.695799207728083164790111837174250683834359,
            0.840018401472533403272555302636558338772258,
            1.023268503573606060588689738498395211300483,
            1.255859085136282496149035687741403985044122,
        ),
    ),
    (
        0.4,
        0.65,
        (
            0.8253235579835158949845697805395190063745,
            0.1338621160836877898575391383950840569989,
            0.0710112935979886745743770664203746758134,
            0.0541784774173873762208472152701393154906,
            0.0494517449481029932714386586401273353617,
            0.0502221962241074764652127892365024315554,
            0.0547429131718303528104722303305931350375,
            0.0627462579270016992000788492778894700075,
            0.0746698810434768864678760362745179321956,
            0.0914808451777334717996463421986810092918,
            0.1147050921109978235104185800057554574708,
            0.1465711325814398757043492181099197917984,
            0.1902571373338462844225085057953823854177,
        ),
        (
            0.9190270392420973478848471774160778462738,
            0.5010021592882475139767453081737767171354,
            0.4688312705664568629356644841691659415972,
            0.5177142277764000147059587510833317474467,
            0.6208433913173031070711926900889045286988,
            0.7823643937868697229213240489900179142670,
            1.0191145350761029126165253557593691585239,
            1.3593452027484960522212885423056424704073,
            1.8457173023588279422916645725184952058635,
            2.5410717031539207287662105618152273788399,
            3.5374046552080413366422791595672470037341,
            4.9692960029774259303491034652093672488707,
            7.0338228700300311264031522795337352226926,
            10.020043225034471401553194050933390974016,
        ),
    ),
    (
        0.5,
        0.55,
        (
            0.8394795702706129706783934654948360410325,
            0.1499164403063963359478614453083470750543,
            0.0908319358194288345999005586556105610069,
            0.0803470334833417864262134081954987019902,
            0.0856384405004704542717663971835424473169,
            0.1019547259329903716766105911448528069506,
            0.1305748115336160150072309911623351523284,
            0.1761050763588499277679704537732929242811,
            0.2468351644029554468698889593583314853486,
            0.3564244768677188553323196975301769697977,
            0.5270025622301027434418321205779314762241,
            0.7943896342593047502260866957039427731776,
            1.2167625324297180206378753787253096783993,
        ),
        (
            0.9744043665463696730314687662723484085813,
            0.6132468053941609101234053415051402349752,
            0.6710966695021669963502789954058993004082,
            0.8707276201850861403618528872292437242726,
            1.2295422312026907609906452348037196571302,
            1.8266059675444205694817638548699906990301,
            2.8069345309977627400322167438821024032409,
            4.4187893290840281339827573139793805587268,
            7.0832360574787653249799018590860687062869,
            11.515088120557582942290563338274745712174,
            18.931511185999274639516732819605594455165,
            31.411996938204963878089048091424028309798,
            52.520729454575828537934780076768577185134,
            88.384854735065298062125622417251073520996,
            149.56637449398047835236703116483092644714,
            254.31790843104117434615624121937495622372,
        ),
    ),
    (
        0.6,
        0.45,
        (
            0.8554696151564199914087224774321783838373,
            0.1708960726897395844132234165994754905373,
            0.1213352290269482260207667564010437464156,
            0.1282018835749474096272901529341076494573,
            0.1646872814515275597348427294090563472179,
            0.2374189087493817423375114793658754489958,
            0.3692081047164954516884561039890508294508,
            0.6056587338479277173311618664015401963868,
            1.0337055615578127436826717513776452476106,
            1.8189884893632678849599091011718520567105,
            3.2793776512738509375806561547016925831128,
            6.0298883807175363312261449542978750456611,
            11.269796855577941715109155203721740735793,
            21.354577850382834496786315532111529462693,
        ),
        (
            1.04345529511513353426326823569160142342838,
            0.77962572192850485048535711388072271372632,
            1.02974236093206758187389128668777397528702,
            1.62203722341135313022433907993860147395972,
            2.78798953118534762046989770119382209443756,
            5.04838148737206914685643655935236541332892,
            9.46327761194348429539987572314952029503864,
            18.1814899494276679043749394081463811247757,
            35.5809805911791687037085198750213045708148,
            70.6339354619144501276254906239838074917358,
            141.828580083433059297030133195739832297859,
            287.448751250132166257642182637978103762677,
            587.115384649923076181773192202238389711345,
            1207.06543522548061603657141890778290399603,
            2495.58872724866422273012188618178997342537,
            5184.69242939480644062471334944523925163600,
            10817.2133369041327524988910635205356016939,
        ),
    ),
    (
        0.7,
        0.35,
        (
            0.8739200618486431359820482173294324246058,
            0.1998140574823769459497418213885348159654,
            0.1727696158780152128147094051876565603862,
            0.2281069132842021671319791750725846795701,
            0.3704681411180712197627619157146806221767,
            0.6792712528848205545443855883980014994450,
            1.3480084966817573020596179874311042267679,
            2.8276709768538207038046918250872679902352,
            6.1794682501239140840906583219887062092430,
            13.935686010342811497608625663457407447757,
            32.218929281059722026322932181420383764028,
            76.006962959226101026399085304912635262362,
            182.32144908775406957609058046006949657416,
            443.51507644112648158679360783118806161062,
            1091.8547229028388292980623647414961662223,
            2715.7658664038195881056269799613407111521,
        ),
        (
            1.13367833657573316571671258513452768536080,
            1.04864317372997039116746991765351150490010,
            1.75346504119846451588826580872136305225406,
            3.52318272680338551269021618722443199230946,
            7.74947641381397458240336356601913534598302,
            17.9864500558507330560532617743406294626849,
            43.2559163462326133313977294448984936591235,
            106.681534454096017031613223924991564429656,
            268.098486573117433951562111736259672695883,
            683.624114850289804796762005964155730439745,
            1763.49708521918740723028849567007874329637,
            4592.37475383116380899419201719007475759114,
            12053.4410190488892782190764838488156555734,
            31846.6630207420816960681624497373078887317,
            84621.2213590568080177035346867495326879117,
            225956.423182907889987641304430180593010940,
            605941.517281758859958050194535269219533685,
            1.63108259953926832083633544697688841456604e6,
        ),
    ),
    (
        0.8,
        0.25,
        (
            0.895902820924731621258525533131864225704,
            0.243140003766786661947749288357729051637,
            0.273081875594105531575351304277604081620,
            0.486280007533573323895498576715458103274,
            1.082747437228230914750752674136983406683,
            2.743445290986452500459431536349945437824,
            7.555817828670234627048618342026400847824,
            22.05194082493752427472777448620986154515,
            67.15640644740229407624192175802742979626,
            211.2722537881770961691291434845898538537,
            681.9037843053270682273212958093073895805,
            2246.956231592536516768812462150619631201,
            7531.483865999711792004783423815426725079,
            25608.51260130241579018675054866136922157,
            88140.74740089604971425934283371277143256,
            306564.4242098446591430938434419151070722,
            1.076036077811072193752770590363885180738e6,
            3.807218502573632648224286313875985190526e6,
            1.356638224422139551020110323739879481042e7,
        ),
        (
            1.26061282657491161418014946566845780315983,
            1.54866563808267658056930177790599939977154,
            3.55366941187160761540650011660758187283401,
            9.90044467610439875577300608183010716301714,
            30.3205666174524719862025105898574414438275,
            98.1802586588830891484913119780870074464833,
            329.771010434557055036273670551546757245808,
            1136.65598974289039303581967838947708073239,
            3993.83433574622979757935610692842933356144,
            14242.7295865552708506232731633468180669284,
            51394.7572916887209594591528374806790960057,
            187246.702914623152141768788258141932569037,
            687653.092375389902708761221294282367947659,
            2.54238553565398227033448846432182516906624e6,
            9.45378121934749027243313241962076028066811e6,
            3.53283630179709170835024033154326126569613e7,
            1.32593262383393014923560730485845833322771e8,
            4.99544968184054821463279808395426941549833e8,
            1.88840934729443872364972817525484292678543e9,
            7.16026753447893719179055010636502508063102e9,
            2.72233079469633962247554894093591262281929e10,
        ),
    ),
    (
        0.85,
        0.175,
        (
            0.915922052601931494319853880201442948834592,
            0.294714252429483394379515488141632749820347,
            0.435776709264636140422971598963772380161131,
            1.067328246493644238508159085364429570207744,
            3.327844118563268085074646976514979307993733,
            11.90406004445092906188837729711173326621810,
            46.47838820224626393512400481776284680677096,
            192.7556002578809476962739389101964074608802,
            835.3356299261900063712302517586717381557137,
            3743.124548343029102644419963712353854902019,
            17219.07731004063094108708549153310467326395,
            80904.60401669850158353080543152212152282878,
            386808.3292751742460123683674607895217760313,
            1.876487670110449342170327796786290400635732e6,
            9.216559908641567755240142886998737950775910e6,
        ),
        (
            1.402200569110579095046054435635136986038164,
            2.322205897861749446534352741005347103992773,
            7.462158366466719682730245467372788273333992,
            29.43506890797307903104978364254987042421285,
            128.1590924337895775262509354898066132182429,
            591.0807036911982326384997979640812493154316,
            2830.546229607726377048576057043685514661188,
            13917.76431889392229954434840686741305556862,
            69786.10525163921228258055074102587429394212,
            355234.1420341879634781808899208309503519936,
            1.830019186413931053503912913904321703777885e6,
            9.519610812032515607466102200648641326190483e6,
            4.992086875574849453986274042758566713803723e7,
            2.635677009826023473846461512029006874800883e8,
            1.399645765120061118824228996253541612110338e9,
            7.469935792837635004663183580452618726280406e9,
            4.004155595835610574316003488168804738481448e10,
            2.154630668144966654449602981243932210695662e11,
        ),
    ),
    (
        math.inf,
        0.125,
        (
            0.931906061029524827613331428871579482766771,
            0.348448029538453860999386797137074571589376,
            0.666809178846938247558793864839434184202736,
            2.210769135708128662563678717558631573758222,
            9.491765048913406881414290930355300611703187,
            47.09304791027740853381457907791343619298913,
            255.9200460211233087050940506395442544885608,
            1480.029532675805407554800779436693505109703,
            8954.040904734313578374783155553041065984547,
            56052.48220982686949967604699243627330816542,
            360395.7241626000916973524840479780937869149,
            2.367539415273216077520928806581689330885103e6,
            1.582994957277684102454906900025484391190264e7,
            1.074158093278511100137056972128875270067228e8,
            7.380585460239595691878086073095523043390649e8,
            5.126022002555101496684687154904781856830296e9,
            3.593534065502416588712409180013118409428367e10,
            2.539881257612812212004146637239987308133582e11,
            1.808180007145359569674767150594344316702507e12,
        ),
        (
            1.541690112721819084362258323861459983048179,
            3.379176214579645449453938918349243359477706,
            14.94058385670236671625328259137998668324435,
            81.91773929235074880784578753539752529822986,
            497.4900546551479866036061853049402721939835,
            3205.184010234846235275447901572262470252768,
            21457.32237355321925571253220641357074594515,
            147557.0156564174712105689758692929775004292,
            1.035045290185256525452269053775273002725343e6,
            7.371922334832212125197513363695905834126154e6,
            5.314344395142401141792228169170505958906345e7,
            3.868823475795976312985118115567305767603128e8,
            2.839458401528033778425531336599562337200510e9,
            2.098266122943898941547136470383199468548861e10,
            1.559617754017662417944194874282275405676282e11,
            1.165096220419884791236699872205721392201682e12,
            8.742012983013913804987431275193291316808766e12,
            6.584725462672366918676967847406180155459650e13,
            4.976798737062434393396993620379481464465749e14,
            3.773018634056605404718444239040628892506293e15,
            2.868263194837819660109735981973458220407767e16,
        ),
    ),
)

# ========== COMPLETE INTEGRAL OF THE FIRST KIND ==========
# K' / (pi / 2) in mc - 0.05, mc < 0.1.
K_KKC_POLYNOMIAL = (
    1.591003453790792180,
    0.416000743991786912,
    0.245791514264103415,
    0.179481482914906162,
    0.144556057087555150,
    0.123200993312427711,
    0.108938811574293531,
    0.098853409871592910,
    0.091439629201749751,
    0.085842591595413900,
    0.081541118718303215,
)

# (upper bound of m, centre in m, K coefficients); the polynomials are in
# (m - centre).
K_INTERVALS = (
    (
        0.1,
        0.05,
        (
            1.591003453790792180,
            0.416000743991786912,
            0.245791514264103415,
            0.179481482914906162,
            0.144556057087555150,
            0.123200993312427711,
            0.108938811574293531,
            0.098853409871592910,
            0.091439629201749751,
            0.085842591595413900,
            0.081541118718303215,
        ),
    ),
    (
        0.2,
        0.15,
        (
            1.635256732264579992,
            0.471190626148732291,
            0.309728410831499587,
            0.252208311773135699,
            0.226725623219684650,
            0.215774446729585976,
            0.213108771877348910,
            0.216029124605188282,
            0.223255831633057896,
            0.234180501294209925,
            0.248557682972264071,
            0.266363809892617521,
            0.287728452156114668,
        ),
    ),
    (
        0.3,
        0.25,
        (
            1.685750354812596043,
            0.541731848613280329,
            0.401524438390690257,
            0.369642473420889090,
            0.376060715354583645,
            0.405235887085125919,
            0.453294381753999079,
            0.520518947651184205,
            0.609426039204995055,
            0.724263522282908870,
            0.871013847709812357,
            1.057652872753547036,
        ),
    ),
    (
        0.4,
        0.35,
        (
            1.744350597225613243,
            0.634864275371935304,
            0.539842564164445538,
            0.571892705193787391,
            0.670295136265406100,
            0.832586590010977199,
            1.073857448247933265,
            1.422091460675497751,
            1.920387183402304829,
            2.632552548331654201,
            3.652109747319039160,
            5.115867135558865806,
            7.224080007363877411,
        ),
    ),
    (
        0.5,
        0.45,
        (
            1.813883936816982644,
            0.763163245700557246,
            0.761928605321595831,
            0.951074653668427927,
            1.315180671703161215,
            1.928560693477410941,
            2.937509342531378755,
            4.594894405442878062,
            7.330071221881720772,
            11.87151259742530180,
            19.45851374822937738,
            32.20638657246426863,
            53.73749198700554656,
            90.27388602940998849,
        ),
    ),
    (
        0.6,
        0.55,
        (
            1.898924910271553526,
            0.950521794618244435,
            1.151077589959015808,
            1.750239106986300540,
            2.952676812636875180,
            5.285800396121450889,
            9.832485716659979747,
            18.78714868327559562,
            36.61468615273698145,
            72.45292395127771801,
            145.1079577347069102,
            293.4786396308497026,
            598.3851815055010179,
            1228.420013075863451,
            2536.529755382764488,
        ),
    ),
    (
        0.7,
        0.65,
        (
            2.007598398424376302,
            1.248457231212347337,
            1.926234657076479729,
            3.751289640087587680,
            8.119944554932045802,
            18.66572130873555361,
            44.60392484291437063,
            109.5092054309498377,
            274.2779548232413480,
            697.5598008606326163,
            1795.716014500247129,
            4668.381716790389910,
            12235.76246813664335,
            32290.17809718320818,
            85713.07608195964685,
            228672.1890493117096,
            612757.2711915852774,
        ),
    ),
    (
        0.8,
        0.75,
        (
            2.156515647499643235,
            1.791805641849463243,
            3.826751287465713147,
            10.38672468363797208,
            31.40331405468070290,
            100.9237039498695416,
            337.3268282632272897,
            1158.707930567827917,
            4060.990742193632092,
            14454.00184034344795,
            52076.66107599404803,
            189493.6591462156887,
            695184.5762413896145,
            2.567994048255284686e6,
            9.541921966748386322e6,
            3.563492744218076174e7,
            1.336692984612040871e8,
            5.033521866866284541e8,
            1.901975729538660119e9,
            7.208915015330103756e9,
        ),
    ),
    (
        0.85,
        0.825,
        (
            2.318122621712510589,
            2.616920150291232841,
            7.897935075731355823,
            30.50239715446672327,
            131.4869365523528456,
            602.9847637356491617,
            2877.024617809972641,
            14110.51991915180325,
            70621.44088156540229,
            358977.2665825309926,
            1.847238263723971684e6,
            9.600515416049214109e6,
            5.030767708502366879e7,
            2.654441886527127967e8,
            1.408862325028702687e9,
            7.515687935373774627e9,
        ),
    ),
    (
        math.inf,
        0.875,
        (
            2.473596173751343912,
            3.727624244118099310,
            15.60739303554930496,
            84.12850842805887747,
            506.9818197040613935,
            3252.277058145123644,
            21713.24241957434256,
            149037.0451890932766,
            1.043999331089990839e6,
            7.427974817042038995e6,
            5.350383967558661151e7,
            3.892498869948708474e8,
            2.855288351100810619e9,
            2.109007703876684053e10,
            1.566998339477902014e11,
            1.170222242422439893e12,
            8.777948323668937971e12,
            6.610124275248495041e13,
            4.994880537133887989e14,
            3.785974339724029920e15,
        ),
    ),
)

# ========== MACLAURIN SERIES OF THE INCOMPLETE INTEGRALS ==========
# (denominator, numerators) of the polynomials in m giving F1 ... FB, the
# building blocks of the series of Bs and Ds.
BS_DS_F = (
    (6.0, (1.0, 1.0)),
    (40.0, (3.0, 2.0, 3.0)),
    (112.0, (5.0, 3.0, 3.0, 5.0)),
    (1152.0, (35.0, 20.0, 18.0, 20.0, 35.0)),
    (2816.0, (63.0, 35.0, 30.0, 30.0, 35.0, 63.0)),
    (13312.0, (231.0, 126.0, 105.0, 100.0, 105.0, 126.0, 231.0)),
    (30720.0, (429.0, 231.0, 189.0, 175.0, 175.0, 189.0, 231.0, 429.0)),
    (557056.0,
     (6435.0, 3432.0, 2722.0, 2520.0, 2450.0, 2520.0, 2722.0, 3432.0,
      6435.0)),
    (1245184.0,
     (12155.0, 6435.0, 5148.0, 4620.0, 4410.0, 4410.0, 4620.0, 5148.0,
      6435.0, 12155.0)),
    (5505024.0,
     (46189.0, 24310.0, 19305.0, 17160.0, 16170.0, 15876.0, 16170.0,
      17160.0, 19305.0, 24310.0, 46189.0)),
    (12058624.0,
     (88179.0, 46189.0, 36465.0, 32175.0, 30030.0, 29106.0, 29106.0,
      30030.0, 32175.0, 36465.0, 46189.0, 88179.0)),
)

BS_DS_A = (
    3.0 / 5.0,
    5.0 / 7.0,
    7.0 / 9.0,
    9.0 / 11.0,
    11.0 / 13.0,
    13.0 / 15.0,
    15.0 / 17.0,
    17.0 / 19.0,
    19.0 / 21.0,
    21.0 / 23.0,
    23.0 / 25.0,
)

# (denominator, rows) of the coefficients of J1 ... JA.  Row i holds the
# coefficients of m**i as a polynomial in n.
JS_MACLAURIN = (
    # J1
    (3.0, (
        (1.0,),
    )),
    # J2
    (10.0, (
        (1.0, 2.0),
        (1.0,),
    )),
    # J3
    (56.0, (
        (3.0, 4.0, 8.0),
        (2.0, 4.0),
        (3.0,),
    )),
    # J4
    (144.0, (
        (5.0, 6.0, 8.0, 16.0),
        (3.0, 4.0, 8.0),
        (3.0, 6.0),
        (5.0,),
    )),
    # J5
    (1408.0, (
        (35.0, 40.0, 48.0, 64.0, 128.0),
        (20.0, 24.0, 32.0, 64.0),
        (18.0, 24.0, 48.0),
        (20.0, 40.0),
        (35.0,),
    )),
    # J6
    (3328.0, (
        (63.0, 70.0, 80.0, 96.0, 128.0, 256.0),
        (35.0, 40.0, 48.0, 64.0, 128.0),
        (30.0, 36.0, 48.0, 96.0),
        (30.0, 40.0, 80.0),
        (35.0, 70.0),
        (63.0,),
    )),
    # J7
    (15360.0, (
        (231.0, 252.0, 280.0, 320.0, 384.0, 512.0, 1024.0),
        (126.0, 140.0, 160.0, 192.0, 256.0, 512.0),
        (105.0, 120.0, 144.0, 192.0, 384.0),
        (100.0, 120.0, 160.0, 320.0),
        (105.0, 140.0, 280.0),
        (126.0, 252.0),
        (231.0,),
    )),
    # J8
    (34816.0, (
        (429.0, 462.0, 504.0, 560.0, 640.0, 768.0, 1024.0, 2048.0),
        (231.0, 252.0, 280.0, 320.0, 384.0, 512.0, 1024.0),
        (189.0, 210.0, 240.0, 288.0, 284.0, 768.0),
        (175.0, 200.0, 240.0, 320.0, 640.0),
        (175.0, 210.0, 280.0, 560.0),
        (189.0, 252.0, 504.0),
        (231.0, 462.0),
        (429.0,),
    )),
    # J9
    (622592.0, (
        (6435.0, 6864.0, 7392.0, 8064.0, 8960.0, 10240.0, 12288.0, 16384.0, 32768.0),
        (3432.0, 3696.0, 4032.0, 4480.0, 5120.0, 6144.0, 8192.0, 16384.0),
        (2772.0, 3024.0, 3360.0, 3840.0, 4608.0, 6144.0, 12288.0),
        (2520.0, 2800.0, 3200.0, 3840.0, 5120.0, 10240.0),
        (2450.0, 2800.0, 3360.0, 4480.0, 8960.0),
        (2520.0, 3024.0, 4032.0, 8064.0),
        (2772.0, 3696.0, 7392.0),
        (3432.0, 6864.0),
        (6435.0,),
    )),
    # JA
    (1376256.0, (
        (12155.0, 12870.0, 13728.0, 14784.0, 16128.0, 17920.0, 20480.0, 24576.0, 32768.0, 65536.0),
        (6435.0, 6864.0, 7392.0, 8064.0, 8960.0, 10240.0, 12288.0, 16384.0, 32768.0),
        (5148.0, 5544.0, 6048.0, 6720.0, 7680.0, 9216.0, 12288.0, 24576.0),
        (4620.0, 5040.0, 5600.0, 6400.0, 7680.0, 10240.0, 20480.0),
        (4410.0, 4900.0, 5600.0, 6720.0, 8960.0, 17920.0),
        (4410.0, 5040.0, 6048.0, 8064.0, 16128.0),
        (4620.0, 5544.0, 7392.0, 14784.0),
        (5148.0, 6864.0, 13728.0),
        (6435.0, 12870.0),
        (12155.0,),
    )),
)

# Upper bounds of y for truncating the series of Js after J5 ... J9.
JS_TRUNCATION = (
    6.0369310e-04,
    2.0727505e-03,
    5.0047026e-03,
    9.6961652e-03,
    1.6220210e-02,
)

# ========== FUKUSHIMA'S T FUNCTION ==========
# Maclaurin series of atanh(sqrt(z)) / sqrt(z).
T_SERIES = tuple(1.0 / (2.0 * k + 1.0) for k in range(13))

# Upper bounds of |z| for the truncations of degree 0 ... 12.
T_TRUNCATION = (
    3.3306691e-16,
    2.3560805e-08,
    9.1939631e-06,
    1.7779240e-04,
    1.0407839e-03,
    3.3616998e-03,
    7.7408014e-03,
    1.4437181e-02,
    2.3407312e-02,
    3.4416203e-02,
    4.7138547e-02,
    6.1227405e-02,
    7.6353468e-02,
)
